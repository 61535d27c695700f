# entity_importer/models/__init__.py
"""
数据模型、模型描述符和数据库会话管理
"""

from .database import (
    get_db_url,
    get_engine,
    get_session,
    init_db
)

from .models import Base, Entry

from .schema import (
    AttributeCategory,
    AttributeDescriptor,
    AttributeType,
    ModelDescriptor,
    ModelKind,
    MEDIA_MODEL_ID,
    WHOLE_DB_MODEL_ID
)

__all__ = [
    # 数据库配置和会话管理
    'get_db_url',
    'get_engine',
    'get_session',
    'init_db',

    # 存储表
    'Base',
    'Entry',

    # 模型描述符
    'AttributeCategory',
    'AttributeDescriptor',
    'AttributeType',
    'ModelDescriptor',
    'ModelKind',
    'MEDIA_MODEL_ID',
    'WHOLE_DB_MODEL_ID'
]
