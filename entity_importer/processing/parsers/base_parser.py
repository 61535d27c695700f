import json
from typing import Any, Dict, List, Optional, Union

from entity_importer.errors import MalformedInput
from entity_importer.models.schema import ModelDescriptor, PUBLISHED_AT_FIELD
from entity_importer.processing.context import ImportContext
from entity_importer.processing.publish_state import normalize_publish_state
from entity_importer.processing.result import ImportFailure


class BaseParser:
    """解析器基类，提供公共方法"""

    format_name = ""

    def __init__(self, context: ImportContext):
        self.context = context
        self.logger = context.logger
        self.failures: List[ImportFailure] = []

    @property
    def model(self) -> Optional[ModelDescriptor]:
        """目标模型；模型未定义时返回 None"""
        schema = self.context.schema
        if schema is None or not schema.has_model(self.context.model_id):
            return None
        return schema.get_model(self.context.model_id)

    def parse(self, raw: Any) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        raise NotImplementedError("Subclasses must implement parse()")

    def normalize_publish_state(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """按模型的草稿支持情况处理 publishedAt（模型未定义时按不支持草稿处理）"""
        model = self.model
        if model is None:
            record.pop(PUBLISHED_AT_FIELD, None)
            return record
        return normalize_publish_state(record, model, self.context.import_as_drafts)

    def decode_text(self, raw: Any) -> str:
        """bytes 按 UTF-8（兼容 BOM）解码，字符串去掉开头的 BOM"""
        if isinstance(raw, (bytes, bytearray)):
            return bytes(raw).decode("utf-8-sig")
        if not isinstance(raw, str):
            raise MalformedInput(f"{self.format_name} input must be text, got {type(raw).__name__}")
        return raw.lstrip("\ufeff")

    def load_json(self, raw: Any) -> Any:
        """
        解码 JSON 文本

        Raises:
            MalformedInput: 不是合法的 JSON
        """
        try:
            return json.loads(self.decode_text(raw))
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid {self.format_name} input: {str(e)}")
            raise MalformedInput(f"Failed to parse {self.format_name} input: {str(e)}") from e

    def record_failure(self, error: Any, data: Any) -> None:
        self.failures.append(ImportFailure(str(error), data))
