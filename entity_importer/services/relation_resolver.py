# entity_importer/services/relation_resolver.py
"""
关系类属性解析

每个属性类别（动态区、组件、媒体、关联）一个解析器，由 AttributeResolverRegistry 按类别分派。
解析结果是存储可接受的引用形式：id、id 列表、或带 __component 标记的组件实体列表。
嵌套对象通过 upsert 引擎递归创建或更新。
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from entity_importer.errors import DataImportError, InvalidRelationCardinality, InvalidShape, UnsupportedRelationType
from entity_importer.models.schema import (
    AUDIT_ACTOR_FIELDS,
    COMPONENT_TAG_FIELD,
    AttributeCategory,
    AttributeDescriptor,
)
from entity_importer.processing.context import ImportContext
from entity_importer.utils.value_utils import is_mapping, is_number, is_sequence, to_list


class AttributeResolver(ABC):
    """单个属性类别的解析器"""

    def __init__(self, upsert_service):
        self.upsert_service = upsert_service

    @abstractmethod
    def resolve(self, attribute: AttributeDescriptor, value: Any, context: ImportContext) -> Any:
        raise NotImplementedError("Subclasses must implement resolve()")

    def _collect_ids(self, target: str, entries: List[Any], context: ImportContext) -> List[Any]:
        """数字引用原样保留，对象递归 upsert 后收集 id，其他值忽略"""
        entity_ids = []
        for entry in entries:
            if is_number(entry):
                entity_ids.append(entry)
            elif is_mapping(entry):
                entity = self.upsert_service.upsert(target, entry, context)
                if entity and entity.get("id"):
                    entity_ids.append(entity["id"])
        return entity_ids

    @staticmethod
    def _shape(entity_ids: List[Any], multiple: bool) -> Any:
        if multiple:
            return entity_ids
        return entity_ids[0] if entity_ids else None


class DynamicUnionResolver(AttributeResolver):
    """动态区：按每个条目的 __component 标记选择组件模型，保持顺序"""

    def resolve(self, attribute, value, context):
        components = []
        for entry in to_list(value):
            if not is_mapping(entry) or not entry.get(COMPONENT_TAG_FIELD):
                raise InvalidShape(f"Every entry of dynamic zone {attribute.name} needs a {COMPONENT_TAG_FIELD} tag.")
            component_id = entry[COMPONENT_TAG_FIELD]
            if attribute.components and component_id not in attribute.components:
                raise InvalidShape(f"Component {component_id} is not allowed in dynamic zone {attribute.name}.")

            payload = {key: val for key, val in entry.items() if key != COMPONENT_TAG_FIELD}
            entity = self.upsert_service.upsert(component_id, payload, context)
            components.append({**entity, COMPONENT_TAG_FIELD: component_id})
        return components


class ComponentResolver(AttributeResolver):
    """组件：非 repeatable 时最多保留一个条目"""

    def resolve(self, attribute, value, context):
        entries = to_list(value)
        if not attribute.repeatable:
            entries = entries[:1]
        return self._shape(self._collect_ids(attribute.target, entries, context), attribute.repeatable)


class MediaResolver(AttributeResolver):
    """媒体：非 multiple 时最多保留一个条目，每个条目通过媒体服务查找或登记"""

    def resolve(self, attribute, value, context):
        if context.media_service is None:
            raise DataImportError(f"Media attribute {attribute.name} cannot be resolved without a media service.")

        entries = to_list(value)
        if not attribute.multiple:
            entries = entries[:1]

        media_ids = []
        for entry in entries:
            media = context.media_service.find_or_import(entry, context.acting_user, allowed_types=attribute.allowed_types)
            if media and media.get("id"):
                media_ids.append(media["id"])
        return self._shape(media_ids, attribute.multiple)


class RelationResolver(AttributeResolver):
    """
    关联：输出形状跟随输入（数组 -> 数组，单值 -> 单值）。
    严格模式下单值关联收到数组时抛出 InvalidRelationCardinality。
    """

    def resolve(self, attribute, value, context):
        multiple = is_sequence(value)
        if multiple and context.strict_relation_cardinality and not attribute.is_multiple_relation:
            raise InvalidRelationCardinality(
                f"Relation {attribute.name} ({attribute.relation}) accepts a single reference, got a list."
            )
        return self._shape(self._collect_ids(attribute.target, to_list(value), context), multiple)


class AttributeResolverRegistry:
    """按属性类别分派解析器"""

    def __init__(self, upsert_service):
        self.resolvers: Dict[AttributeCategory, AttributeResolver] = {
            AttributeCategory.DYNAMIC_UNION: DynamicUnionResolver(upsert_service),
            AttributeCategory.COMPONENT: ComponentResolver(upsert_service),
            AttributeCategory.MEDIA: MediaResolver(upsert_service),
            AttributeCategory.RELATION: RelationResolver(upsert_service),
        }

    def resolve(self, attribute: AttributeDescriptor, value: Any, context: ImportContext) -> Optional[Any]:
        """
        解析一个关系类属性的值

        Args:
            attribute: 属性描述符
            value: 原始值
            context: 导入上下文

        Returns:
            None、id、id 列表或组件实体列表

        Raises:
            UnsupportedRelationType: 属性类型不是关系类
        """
        if value is None:
            return None

        # 不信任客户端提交的审计字段
        if attribute.name in AUDIT_ACTOR_FIELDS:
            return context.acting_user.id if context.acting_user else None

        resolver = self.resolvers.get(attribute.category)
        if resolver is None:
            raise UnsupportedRelationType(attribute.type.value)
        return resolver.resolve(attribute, value, context)
