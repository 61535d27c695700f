"""统一日志配置模块

实现功能：
- 同时输出日志到文件和控制台
- 支持日志文件自动滚动（防止过大）
- 从配置文件读取日志路径和级别
- 提供导入结果的专用日志函数
"""
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from entity_importer.utils.yaml_config import YAMLConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"


def setup_logger(name: Optional[str], config: YAMLConfig) -> logging.Logger:
    """
    配置并返回指定名称的日志器，确保只有一组处理器

    Args:
        name: 日志器名称，用于区分不同模块的日志
        config: 配置实例（读取logging节点）

    Returns:
        配置好的日志器实例
    """
    log_config = config.get_log_config()

    # 确保日志目录存在
    log_dir = Path(log_config["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)

    logger_name = name or "entity_importer"
    logger = logging.getLogger(logger_name)
    logger.setLevel(str(log_config["log_level"]).upper())

    # 清除已有处理器，避免重复输出
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    # 文件处理器（支持日志滚动）
    log_file = log_dir / f"{logger_name}.log"
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=log_config["max_bytes"],
        backupCount=log_config["backup_count"],
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # 控制台处理器
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # 防止通过父记录器传播（避免重复日志）
    logger.propagate = False

    return logger


def log_import_result(model_id: str, total: int, failures: int, logger: logging.Logger) -> None:
    """记录一次导入的汇总结果"""
    succeeded = total - failures
    if failures:
        logger.warning(f"Import complete for {model_id}: {succeeded} succeeded, {failures} failed")
    else:
        logger.info(f"Import complete for {model_id}: {succeeded} succeeded, 0 failed")


def get_import_logger(config: YAMLConfig) -> logging.Logger:
    """获取导入流程专用日志器"""
    return setup_logger("entity_importer.import", config)
