# entity_importer/models/schema.py
"""
模型与属性描述符（只读，由 SchemaRegistry 提供）
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

ID_FIELD = "id"
PUBLISHED_AT_FIELD = "publishedAt"
AUDIT_ACTOR_FIELDS = ("createdBy", "updatedBy")
COMPONENT_TAG_FIELD = "__component"

# 保留的模型标识
MEDIA_MODEL_ID = "plugin::upload.file"
WHOLE_DB_MODEL_ID = "custom:db"


class AttributeCategory(Enum):
    """属性类别：每个属性类型唯一归属一个类别"""
    SCALAR = "scalar"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    NUMBER = "number"
    RELATION = "relation"
    COMPONENT = "component"
    DYNAMIC_UNION = "dynamic-union"
    MEDIA = "media"


class AttributeType(Enum):
    """schema 中的具体属性类型"""
    STRING = "string"
    TEXT = "text"
    RICHTEXT = "richtext"
    EMAIL = "email"
    PASSWORD = "password"
    UID = "uid"
    ENUMERATION = "enumeration"
    JSON = "json"
    INTEGER = "integer"
    BIGINTEGER = "biginteger"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    TIMESTAMP = "timestamp"
    RELATION = "relation"
    COMPONENT = "component"
    DYNAMICZONE = "dynamiczone"
    MEDIA = "media"

    @property
    def category(self) -> AttributeCategory:
        return TYPE_CATEGORIES.get(self, AttributeCategory.SCALAR)


TYPE_CATEGORIES = {
    AttributeType.INTEGER: AttributeCategory.NUMBER,
    AttributeType.BIGINTEGER: AttributeCategory.NUMBER,
    AttributeType.FLOAT: AttributeCategory.NUMBER,
    AttributeType.DECIMAL: AttributeCategory.NUMBER,
    AttributeType.BOOLEAN: AttributeCategory.BOOLEAN,
    AttributeType.DATE: AttributeCategory.DATETIME,
    AttributeType.DATETIME: AttributeCategory.DATETIME,
    AttributeType.TIME: AttributeCategory.DATETIME,
    AttributeType.TIMESTAMP: AttributeCategory.DATETIME,
    AttributeType.RELATION: AttributeCategory.RELATION,
    AttributeType.COMPONENT: AttributeCategory.COMPONENT,
    AttributeType.DYNAMICZONE: AttributeCategory.DYNAMIC_UNION,
    AttributeType.MEDIA: AttributeCategory.MEDIA,
}

# 需要经过关系解析器处理的类别
RELATIONAL_CATEGORIES = (
    AttributeCategory.COMPONENT,
    AttributeCategory.DYNAMIC_UNION,
    AttributeCategory.MEDIA,
    AttributeCategory.RELATION,
)

# 关系基数：以 Many 结尾的关系为多值
MULTIPLE_RELATIONS = ("oneToMany", "manyToMany", "morphToMany", "manyWay")


class ModelKind(Enum):
    SINGLE = "singleType"
    COLLECTION = "collectionType"


@dataclass(frozen=True)
class AttributeDescriptor:
    name: str
    type: AttributeType
    target: Optional[str] = None
    relation: Optional[str] = None
    repeatable: bool = False
    multiple: bool = False
    allowed_types: Tuple[str, ...] = ("any",)
    components: Tuple[str, ...] = ()

    @property
    def category(self) -> AttributeCategory:
        return self.type.category

    @property
    def is_multiple_relation(self) -> bool:
        """relation 属性在 schema 中声明的基数"""
        return self.relation in MULTIPLE_RELATIONS

    @classmethod
    def from_dict(cls, name: str, definition: Dict[str, Any]) -> "AttributeDescriptor":
        """
        从 schema 配置构建属性描述符

        Raises:
            ValueError: type 缺失或不是已知类型
        """
        raw_type = definition.get("type")
        try:
            attribute_type = AttributeType(raw_type)
        except ValueError:
            raise ValueError(f"Attribute {name} has unknown type {raw_type!r}") from None

        # component 的目标模型写在 component 键上，relation 写在 target 键上
        target = definition.get("component") if attribute_type is AttributeType.COMPONENT else definition.get("target")
        allowed_types = definition.get("allowed_types") or definition.get("allowedTypes") or ["any"]
        return cls(
            name=name,
            type=attribute_type,
            target=target,
            relation=definition.get("relation"),
            repeatable=bool(definition.get("repeatable", False)),
            multiple=bool(definition.get("multiple", False)),
            allowed_types=tuple(allowed_types),
            components=tuple(definition.get("components") or ()),
        )


@dataclass(frozen=True)
class ModelDescriptor:
    model_id: str
    kind: ModelKind
    attributes: Tuple[AttributeDescriptor, ...] = field(default_factory=tuple)
    supports_draft_publish: bool = False
    identifying_field: str = ID_FIELD
    is_component: bool = False

    @property
    def is_singular(self) -> bool:
        return self.kind is ModelKind.SINGLE

    def attribute(self, name: str) -> Optional[AttributeDescriptor]:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None

    def attribute_names(self) -> List[str]:
        return [attribute.name for attribute in self.attributes]
