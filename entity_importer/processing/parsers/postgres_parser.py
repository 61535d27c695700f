"""
外部关系型数据库导出（PostgreSQL 表转 JSON）解析器

每一行按模型的字段映射转换为目标模型的记录：
    foreign_dump:
      published_field: published_at
      models:
        api::mediation.mediation:
          fields: {name: name, configuration: configuration, version: version}
          structured_fields: [configuration]
          defaults: {version: main}
未配置映射的模型：复制源数据中属于模型非关系属性的字段，结构化的值序列化为 JSON 文本。

单行转换失败记录到 failures 中，不影响其余行。
"""

import json
from typing import Any, Dict, List

from entity_importer.errors import InvalidShape
from entity_importer.models.schema import ID_FIELD, PUBLISHED_AT_FIELD, RELATIONAL_CATEGORIES
from entity_importer.processing.parsers.base_parser import BaseParser
from entity_importer.utils.value_utils import is_blank, is_mapping, is_sequence, parse_datetime, to_iso_timestamp

DEFAULT_PUBLISHED_FIELD = "published_at"


class PostgresParser(BaseParser):

    format_name = "postgres"

    def parse(self, raw: Any) -> List[Dict[str, Any]]:
        data = raw if is_mapping(raw) or is_sequence(raw) else self.load_json(raw)
        rows = list(data) if is_sequence(data) else [data]

        model = self.model
        self.logger.info(
            f"Parsing PostgreSQL JSON for {self.context.model_id}: {len(rows)} records found, "
            f"importAsDrafts: {self.context.import_as_drafts}"
        )

        records = []
        for index, row in enumerate(rows, start=1):
            try:
                records.append(self._transform_row(row, model))
            except (InvalidShape, ValueError, TypeError) as e:
                self.logger.error(f"Error transforming PostgreSQL record {index}: {str(e)}", exc_info=True)
                self.record_failure(f"Failed to transform PostgreSQL record {index}: {str(e)}", row)

        self.logger.info(
            f"PostgreSQL JSON parsing complete: {len(records)} records transformed, {len(self.failures)} failed"
        )
        return records

    def _transform_row(self, row: Any, model) -> Dict[str, Any]:
        if not is_mapping(row):
            raise InvalidShape(f"PostgreSQL record must be an object, got {type(row).__name__}")

        mapping = (self.context.foreign_dump.get("models") or {}).get(self.context.model_id)
        if mapping:
            transformed = self._apply_mapping(row, mapping)
        else:
            transformed = self._copy_model_fields(row, model)

        if model is not None and model.supports_draft_publish:
            self._apply_published_state(row, transformed)
        return transformed

    @staticmethod
    def _apply_mapping(row: Dict[str, Any], mapping: Dict[str, Any]) -> Dict[str, Any]:
        fields = mapping.get("fields") or {}
        structured_fields = set(mapping.get("structured_fields") or ())
        defaults = mapping.get("defaults") or {}

        transformed = {}
        for target, source in fields.items():
            if source in row:
                value = row[source]
            elif target in defaults:
                value = None
            else:
                continue
            if target in defaults and (is_blank(value) or value is False):
                value = defaults[target]
            if target in structured_fields and value is not None and not isinstance(value, str):
                value = json.dumps(value)
            transformed[target] = value
        return transformed

    def _copy_model_fields(self, row: Dict[str, Any], model) -> Dict[str, Any]:
        if model is None:
            return {}
        relational = {
            a.name for a in self.context.schema.list_attributes(model.model_id, filter_types=RELATIONAL_CATEGORIES)
        }
        transformed = {}
        for attribute in model.attributes:
            name = attribute.name
            if name in relational or name in (ID_FIELD, PUBLISHED_AT_FIELD) or name not in row:
                continue
            value = row[name]
            if is_mapping(value) or is_sequence(value):
                value = json.dumps(value)
            transformed[name] = value
        return transformed

    def _apply_published_state(self, row: Dict[str, Any], transformed: Dict[str, Any]) -> None:
        if self.context.import_as_drafts:
            transformed[PUBLISHED_AT_FIELD] = None
            return

        published_field = self.context.foreign_dump.get("published_field") or DEFAULT_PUBLISHED_FIELD
        if published_field not in row:
            return
        published_value = row[published_field]
        if published_value is None:
            transformed[PUBLISHED_AT_FIELD] = None
            return
        parsed = parse_datetime(published_value)
        if parsed is not None:
            transformed[PUBLISHED_AT_FIELD] = to_iso_timestamp(parsed)
