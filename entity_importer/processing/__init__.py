"""数据处理模块：导入上下文、发布状态规则、输入格式解析器及导入结果"""

from .context import ActingUser, ImportContext, ImportOptions
from .publish_state import effective_import_as_drafts, normalize_publish_state
from .result import ImportFailure, ImportResult

__all__ = [
    "ActingUser",
    "ImportContext",
    "ImportOptions",
    "effective_import_as_drafts",
    "normalize_publish_state",
    "ImportFailure",
    "ImportResult",
]
