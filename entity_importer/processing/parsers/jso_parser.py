from typing import Any

from entity_importer.errors import InvalidShape
from entity_importer.processing.parsers.base_parser import BaseParser
from entity_importer.utils.value_utils import is_mapping, is_sequence


class JsoParser(BaseParser):
    """已解码的对象或数组，原样返回"""

    format_name = "jso"

    def parse(self, raw: Any) -> Any:
        if not is_mapping(raw) and not is_sequence(raw):
            raise InvalidShape("To import JSO, data must be an array or an object")
        return raw
