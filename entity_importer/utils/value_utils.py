# entity_importer/utils/value_utils.py
"""字段值处理的通用函数：数组化、类型判断、日期与数字解析"""

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, List, Optional

# 常见的非ISO日期格式（按顺序尝试）
DATETIME_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
    "%d %b %Y",
    "%b %d, %Y",
]


def to_list(value: Any) -> List[Any]:
    """None -> []，列表/元组 -> list，其他值包装为单元素列表"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_number(value: Any) -> bool:
    """数字引用（bool 不算数字）"""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_blank(value: Any) -> bool:
    """None 或空字符串"""
    return value is None or value == ""


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    通用日期解析

    Args:
        value: datetime、数字（毫秒时间戳）或字符串

    Returns:
        带时区的 datetime（无时区时按 UTC 处理）；无法解析时返回 None
    """
    if isinstance(value, datetime):
        parsed = value
    elif is_number(value):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        parsed = _parse_datetime_text(value.strip())
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_datetime_text(text: str) -> Optional[datetime]:
    if not text:
        return None
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def to_iso_timestamp(value: datetime) -> str:
    """统一编码为 UTC 毫秒精度时间戳，例：2024-01-02T03:04:05.000Z"""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"


def parse_number(value: Any) -> Optional[Any]:
    """
    数字转换：整数文本 -> int，其他可解析文本 -> float；NaN、无穷、无法解析 -> None
    """
    if is_number(value):
        return value if math.isfinite(value) else None
    if isinstance(value, bool) or not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
