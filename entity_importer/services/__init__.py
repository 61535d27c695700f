"""业务服务：模型定义查询、媒体解析、upsert 引擎和导入编排"""

from .schema_service import SchemaRegistry
from .media_service import MediaService
from .relation_resolver import (
    AttributeResolver,
    AttributeResolverRegistry,
    ComponentResolver,
    DynamicUnionResolver,
    MediaResolver,
    RelationResolver,
)
from .upsert_service import UpsertService
from .import_service import ImportService, resolve_request_format

__all__ = [
    "SchemaRegistry",
    "MediaService",
    "AttributeResolver",
    "AttributeResolverRegistry",
    "ComponentResolver",
    "DynamicUnionResolver",
    "MediaResolver",
    "RelationResolver",
    "UpsertService",
    "ImportService",
    "resolve_request_format",
]
