# entity_importer/utils/yaml_config.py
"""
YAML配置文件处理工具
提供统一接口加载和解析YAML格式的配置文件，为每个配置模块提供专用接口。
支持按节点路径查询配置项，自动处理配置文件不存在、节点缺失等异常情况。
"""

import os
import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ENTITY_IMPORTER_CONFIG"

# 导入行为的默认值（import节点中未配置时使用）
DEFAULT_IMPORT_CONFIG = {
    "import_as_drafts": True,
    "strict_relation_cardinality": False,
    "detect_cycles": True,
}


class YAMLConfig:
    """YAML配置文件处理器"""

    REQUIRED_SECTIONS = ["database", "schema", "import", "logging"]

    def __init__(self, config_file: Optional[str] = None, config_data: Optional[Dict[str, Any]] = None):
        """
        初始化配置处理器

        Args:
            config_file: YAML配置文件路径，默认读取环境变量 ENTITY_IMPORTER_CONFIG，
                         否则使用项目根目录下的 config/config.yaml
            config_data: 已加载的配置字典（提供时不再读取文件）
        """
        if config_data is not None:
            self.config_path = "<memory>"
            self.config_data = config_data
        else:
            self.config_path = config_file or os.getenv(CONFIG_ENV_VAR) or self._get_default_config_path()
            self.config_data = self._load_config()
        self._validate_core_config()

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "YAMLConfig":
        """从内存中的字典构建配置（测试或嵌入调用时使用）"""
        return cls(config_data=copy.deepcopy(config_data))

    def _get_default_config_path(self) -> str:
        """获取默认配置文件路径（config/config.yaml）"""
        current_dir = Path(__file__).absolute().parent.parent.parent  # entity_importer/utils/ -> 项目根目录
        default_path = current_dir / "config" / "config.yaml"
        return str(default_path)

    def _load_config(self) -> Dict[str, Any]:
        """加载并解析YAML配置文件"""
        config_path = Path(self.config_path).absolute()

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        if not config_path.is_file():
            raise IsADirectoryError(f"Config path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
            logger.info(f"Loaded YAML config: {config_path}")
            return config_data
        except yaml.YAMLError as e:
            raise ValueError(f"YAML config parse error: {str(e)} (file: {config_path})")

    def _validate_core_config(self) -> None:
        """验证核心配置节点"""
        missing = [sec for sec in self.REQUIRED_SECTIONS if sec not in self.config_data]
        if missing:
            raise ValueError(f"Config is missing required sections: {missing} (file: {self.config_path})")

    def get(self, path: str, default: Any = None, required: bool = False) -> Any:
        """
        按路径获取配置项

        Args:
            path: 配置节点路径，使用点分隔（如"import.detect_cycles"）
            default: 当配置项不存在时返回的默认值
            required: 是否为必填项，若为True且配置项不存在则抛出异常

        Returns:
            配置项的值

        Examples:
            >>> config.get("logging.log_level")
            'INFO'
        """
        keys = path.split('.')
        current = self.config_data

        for key in keys:
            if not isinstance(current, dict) or key not in current:
                if required:
                    raise KeyError(f"Config is missing required node: {path} (file: {self.config_path})")
                return default
            current = current[key]

        return current

    # 专用接口：为每个配置模块提供独立的方法
    def get_database_config(self) -> Dict[str, Any]:
        """获取数据库配置（database节点）"""
        return self.get("database", required=True)

    def get_schema_config(self) -> Dict[str, Any]:
        """获取模型定义配置（schema节点）"""
        return self.get("schema", required=True)

    def get_import_config(self) -> Dict[str, Any]:
        """获取导入行为配置（import节点），未配置的键使用默认值"""
        configured = self.get("import", default={}) or {}
        return {**DEFAULT_IMPORT_CONFIG, **configured}

    def get_foreign_dump_config(self, model_id: Optional[str] = None) -> Dict[str, Any]:
        """
        获取外部数据库导出（postgres）的字段映射配置（foreign_dump节点）

        Args:
            model_id: 可选，指定模型标识，只返回该模型的映射（未配置时返回空字典）
        """
        dump_config = self.get("foreign_dump", default={}) or {}
        if model_id is None:
            return dump_config
        return (dump_config.get("models") or {}).get(model_id, {})

    def get_log_config(self) -> Dict[str, Any]:
        """获取日志配置（logging节点）"""
        return {
            "log_dir": self.get("logging.log_dir", default="./logs/"),
            "log_level": self.get("logging.log_level", default="INFO"),
            "max_bytes": self.get("logging.max_bytes", default=10485760),
            "backup_count": self.get("logging.backup_count", default=5)
        }

    def __str__(self) -> str:
        return f"YAMLConfig(file={self.config_path})"


# 单例模式：命令行入口共享一个配置实例（核心服务通过参数接收配置，不使用单例）
_config_instance: Optional[YAMLConfig] = None


def get_yaml_config(config_file: Optional[str] = None) -> YAMLConfig:
    """
    获取YAML配置实例（单例模式）

    Args:
        config_file: 配置文件路径，首次调用时有效

    Returns:
        YAMLConfig实例
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = YAMLConfig(config_file)
    return _config_instance
