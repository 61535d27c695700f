"""输入格式解析器：按格式名称选择解析器，输出规范化的记录"""

from typing import Any

from entity_importer.errors import UnsupportedFormat
from entity_importer.processing.context import ImportContext

from .base_parser import BaseParser
from .csv_parser import CsvParser
from .jso_parser import JsoParser
from .json_parser import JsonParser
from .postgres_parser import PostgresParser

INPUT_FORMAT_TO_PARSER = {
    "csv": CsvParser,
    "jso": JsoParser,
    "json": JsonParser,
    "postgres": PostgresParser,
}

# 描述性格式名称
FORMAT_ALIASES = {
    "delimited-text": "csv",
    "pre-decoded": "jso",
    "structured-export": "json",
    "foreign-relational-dump": "postgres",
}

INPUT_FORMATS = list(INPUT_FORMAT_TO_PARSER)


def canonical_format(format_name: str) -> str:
    """
    返回格式的规范名称

    Raises:
        UnsupportedFormat: 没有对应的解析器
    """
    canonical = FORMAT_ALIASES.get(format_name, format_name)
    if canonical not in INPUT_FORMAT_TO_PARSER:
        raise UnsupportedFormat(format_name)
    return canonical


def get_parser(format_name: str, context: ImportContext) -> BaseParser:
    return INPUT_FORMAT_TO_PARSER[canonical_format(format_name)](context)


def parse_input_data(format_name: str, raw: Any, context: ImportContext) -> Any:
    """按格式解析原始输入（解析器级别的失败条目不返回，需要时使用 get_parser）"""
    return get_parser(format_name, context).parse(raw)


__all__ = [
    "BaseParser",
    "CsvParser",
    "JsoParser",
    "JsonParser",
    "PostgresParser",
    "INPUT_FORMAT_TO_PARSER",
    "INPUT_FORMATS",
    "FORMAT_ALIASES",
    "canonical_format",
    "get_parser",
    "parse_input_data",
]
