"""
分隔文本（CSV）解析器

- 去除 BOM 与表头空白后用 csv.DictReader 逐行读取
- 关系类字段（relation / component / media / dynamiczone）的单元格按 JSON 解码
- 日期、布尔、数字字段按类型转换，无法转换时不抛出异常
"""

import csv
import io
import json
from typing import Any, Dict, List, Optional

from entity_importer.models.schema import AttributeCategory, RELATIONAL_CATEGORIES
from entity_importer.processing.parsers.base_parser import BaseParser
from entity_importer.utils.value_utils import parse_datetime, parse_number, to_iso_timestamp

# 关系单元格中表示“无值”的文本
EMPTY_CELL_VALUES = ("", "null", "undefined")

TRUE_TEXT = ("true", "1")
FALSE_TEXT = ("false", "0")


class CsvParser(BaseParser):
    """CSV 文本 -> 记录列表"""

    format_name = "csv"

    def parse(self, raw: Any) -> List[Dict[str, Any]]:
        rows = self._read_rows(raw)
        model = self.model

        relation_names = self._attribute_names(model, *RELATIONAL_CATEGORIES)
        datetime_names = self._attribute_names(model, AttributeCategory.DATETIME)
        boolean_names = self._attribute_names(model, AttributeCategory.BOOLEAN)
        number_names = self._attribute_names(model, AttributeCategory.NUMBER)

        records = []
        for row in rows:
            for name in relation_names:
                row[name] = self._parse_relation_cell(name, row.get(name))
            for name in datetime_names:
                if name in row:
                    row[name] = self._parse_datetime_cell(row[name])
            for name in boolean_names:
                if name in row:
                    row[name] = self._parse_boolean_cell(row[name])
            for name in number_names:
                if name in row:
                    row[name] = self._parse_number_cell(row[name])
            records.append(self.normalize_publish_state(row))

        self.logger.info(f"Parsed {len(records)} CSV rows for {self.context.model_id}")
        return records

    def _read_rows(self, raw: Any) -> List[Dict[str, Any]]:
        text = self.decode_text(raw)
        if not text.strip():
            return []

        reader = csv.DictReader(io.StringIO(text), restval="")
        if reader.fieldnames is None:
            return []
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

        # 多出的单元格（键为 None）丢弃
        return [{key: value for key, value in row.items() if key is not None} for row in reader]

    def _attribute_names(self, model, *categories) -> List[str]:
        if model is None:
            return []
        return [a.name for a in self.context.schema.list_attributes(model.model_id, filter_types=categories)]

    def _parse_relation_cell(self, name: str, value: Any) -> Any:
        if value is None or value in EMPTY_CELL_VALUES:
            return None
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            self.logger.error(f"Error parsing relation field {name}: {str(e)}")
            return None

    @staticmethod
    def _parse_datetime_cell(value: Any) -> Optional[Any]:
        if value in ("", "null"):
            return None
        parsed = parse_datetime(value)
        return to_iso_timestamp(parsed) if parsed is not None else value

    @staticmethod
    def _parse_boolean_cell(value: Any) -> Any:
        if value is True or value in TRUE_TEXT:
            return True
        if value is False or value in FALSE_TEXT:
            return False
        if value in ("", "null"):
            return None
        return value

    @staticmethod
    def _parse_number_cell(value: Any) -> Any:
        if value in ("", "null"):
            return None
        return parse_number(value)
