"""配置与日志工具"""

from .yaml_config import YAMLConfig, get_yaml_config
from .logging_config import setup_logger, get_import_logger, log_import_result

__all__ = [
    "YAMLConfig",
    "get_yaml_config",
    "setup_logger",
    "get_import_logger",
    "log_import_result",
]
