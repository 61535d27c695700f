# entity_importer/services/upsert_service.py
"""
Upsert 引擎

先按定义顺序解析模型的所有关系类属性，再根据模型类型决定创建或更新：
- singleType：忽略传入的 id，存在唯一实体则更新，否则创建
- collectionType：标识字段有值时按其查找，找到则按存储主键更新，否则创建
"""

from typing import Any, Dict, Optional

from entity_importer.errors import InvalidShape
from entity_importer.models.schema import ID_FIELD, ModelDescriptor, RELATIONAL_CATEGORIES
from entity_importer.processing.context import ImportContext
from entity_importer.processing.publish_state import normalize_publish_state
from entity_importer.repositories.entity_store import Entity
from entity_importer.services.relation_resolver import AttributeResolverRegistry
from entity_importer.utils.value_utils import is_blank, is_mapping

# singleType 在解析链中的标识
SINGLE_TYPE_MARKER = "__single__"


class UpsertService:
    """按标识字段创建或更新实体"""

    def __init__(self):
        self.resolvers = AttributeResolverRegistry(self)

    def upsert(
        self,
        model_id: str,
        record: Dict[str, Any],
        context: ImportContext,
        identifying_field: Optional[str] = None,
    ) -> Entity:
        """
        解析关系属性后写入一条记录（不修改传入的记录）

        Args:
            model_id: 模型标识
            record: 规范化后的记录
            context: 导入上下文
            identifying_field: 标识字段，默认使用模型配置的标识字段

        Returns:
            写入后的实体

        Raises:
            UnknownModel: 模型不存在
            InvalidShape: 记录不是对象
            CyclicReference: 解析链中出现环
        """
        if not is_mapping(record):
            raise InvalidShape(f"Record for {model_id} must be an object, got {type(record).__name__}")

        model = context.schema.get_model(model_id)
        identifying_field = identifying_field or model.identifying_field

        data = dict(record)
        normalize_publish_state(data, model, context.import_as_drafts)

        chain_value = SINGLE_TYPE_MARKER if model.is_singular else data.get(identifying_field)
        with context.resolving(model_id, chain_value):
            for attribute in context.schema.list_attributes(model_id, filter_types=RELATIONAL_CATEGORIES):
                data[attribute.name] = self.resolvers.resolve(attribute, data.get(attribute.name), context)
            return self.write(model, data, identifying_field, context)

    def write(self, model: ModelDescriptor, data: Dict[str, Any], identifying_field: str, context: ImportContext) -> Entity:
        """不解析关系，直接按模型类型写入存储"""
        if model.is_singular:
            return self._write_single_type(model, data, context)
        return self._write_collection_type(model, data, identifying_field, context)

    @staticmethod
    def _write_single_type(model: ModelDescriptor, data: Dict[str, Any], context: ImportContext) -> Entity:
        data.pop(ID_FIELD, None)
        existing = context.store.find_many(model.model_id)
        if existing:
            context.logger.debug(f"Updating single type {model.model_id} id={existing[0]['id']}")
            return context.store.update(model.model_id, existing[0]["id"], data)
        context.logger.debug(f"Creating single type {model.model_id}")
        return context.store.create(model.model_id, data)

    @staticmethod
    def _write_collection_type(
        model: ModelDescriptor, data: Dict[str, Any], identifying_field: str, context: ImportContext
    ) -> Entity:
        identifying_value = data.get(identifying_field)

        # 标识字段不是 id 时，传入的 id 可能与存储分配的主键冲突
        if identifying_field != ID_FIELD:
            data.pop(ID_FIELD, None)

        if is_blank(identifying_value):
            context.logger.debug(f"No {identifying_field} value, creating new {model.model_id} entry")
            return context.store.create(model.model_id, data)

        existing = context.store.find_one(model.model_id, {identifying_field: identifying_value})
        if existing:
            context.logger.debug(f"Found existing {model.model_id} id={existing['id']} by {identifying_field}, updating")
            return context.store.update(model.model_id, existing["id"], data)

        context.logger.debug(f"No {model.model_id} entry where {identifying_field}={identifying_value!r}, creating")
        return context.store.create(model.model_id, data)
