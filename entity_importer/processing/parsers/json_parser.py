from typing import Any, Dict, List, Union

from entity_importer.errors import InvalidShape
from entity_importer.processing.parsers.base_parser import BaseParser
from entity_importer.utils.value_utils import is_mapping

# 带版本号的导出包直接交给 v2 导入流程
VERSIONED_ENVELOPE = 2


class JsonParser(BaseParser):
    """结构化导出（JSON 文本）解析器：不做字段转换，只处理发布状态"""

    format_name = "json"

    def parse(self, raw: Any) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        data = self.load_json(raw)

        if is_mapping(data):
            if data.get("version") == VERSIONED_ENVELOPE:
                return data
            return self.normalize_publish_state(dict(data))

        if isinstance(data, list):
            # 非对象条目原样保留，由逐条导入记录为失败
            return [self.normalize_publish_state(dict(item)) if is_mapping(item) else item for item in data]

        raise InvalidShape("To import JSON, data must be an array or an object")
