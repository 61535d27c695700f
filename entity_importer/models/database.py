# entity_importer/models/database.py
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator, Dict, Any
from contextlib import contextmanager

from entity_importer.utils.yaml_config import YAMLConfig
from entity_importer.models.models import Base

# 数据库连接池配置（MySQL）
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_RECYCLE = 3600  # 1小时回收连接，避免超时


def get_db_url(db_config: Dict[str, Any]) -> str:
    """
    根据database节点拼接连接字符串

    支持两种类型：
    - sqlite：path 为文件路径，":memory:" 表示内存库
    - mysql：host/port/db_name/user/password/charset，使用 pymysql 驱动

    :param db_config: database节点配置
    :return: SQLAlchemy 连接字符串
    """
    db_type = str(db_config.get("type", "sqlite")).lower()

    if db_type == "sqlite":
        path = db_config.get("path", ":memory:")
        if path == ":memory:":
            return "sqlite://"
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path}"

    if db_type == "mysql":
        required_keys = ["host", "user", "password", "db_name"]
        missing_keys = [key for key in required_keys if not db_config.get(key)]
        if missing_keys:
            raise ValueError(f"Database config is missing required keys: {missing_keys}")
        return (
            f"mysql+pymysql://{db_config['user']}:{db_config['password']}"
            f"@{db_config['host']}:{int(db_config.get('port', 3306))}/{db_config['db_name']}"
            f"?charset={db_config.get('charset', 'utf8mb4')}"
        )

    raise ValueError(f"Unsupported database type: {db_type}")


def get_engine(config: YAMLConfig) -> Engine:
    """
    创建SQLAlchemy引擎
    :param config: 配置实例（读取database节点）
    :return: SQLAlchemy引擎
    """
    db_config = config.get_database_config()
    connect_str = get_db_url(db_config)

    if connect_str.startswith("mysql"):
        return create_engine(
            connect_str,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_recycle=POOL_RECYCLE,
            echo=bool(db_config.get("echo", False))
        )
    return create_engine(connect_str, echo=bool(db_config.get("echo", False)))


def init_db(engine: Engine) -> None:
    """创建所有表（已存在则跳过）"""
    Base.metadata.create_all(engine)


@contextmanager
def get_session(config: YAMLConfig, engine: Engine = None) -> Generator[Session, None, None]:
    """
    获取数据库会话的上下文管理器
    使用方式：
        with get_session(config) as db_session:
            # 执行操作...

    :param config: 配置实例
    :param engine: 可选，复用已创建的引擎
    :yield: SQLAlchemy 会话
    """
    engine = engine or get_engine(config)
    SessionLocal = sessionmaker(autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.commit()  # 成功则提交
    except Exception:
        session.rollback()  # 出错自动回滚
        raise
    finally:
        session.close()
