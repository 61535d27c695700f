# entity_importer/services/schema_service.py
"""
模型定义查询服务

从 YAML 模型定义（models / components 两个节点）构建只读的 ModelDescriptor，
对导入流程提供属性列表、模型类型、草稿支持、标识字段等查询。

模型定义示例：
    models:
      api::article.article:
        kind: collectionType
        draft_and_publish: true
        id_field: slug
        attributes:
          title: {type: string}
          author: {type: relation, relation: manyToOne, target: api::author.author}
    components:
      shared.seo:
        attributes:
          metaTitle: {type: string}
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from entity_importer.errors import UnknownModel
from entity_importer.models.schema import (
    AttributeCategory,
    AttributeDescriptor,
    AttributeType,
    ID_FIELD,
    MEDIA_MODEL_ID,
    ModelDescriptor,
    ModelKind,
    WHOLE_DB_MODEL_ID,
)
from entity_importer.utils.yaml_config import YAMLConfig

logger = logging.getLogger(__name__)

TypeFilter = Iterable[Union[AttributeCategory, AttributeType, str]]

# 上传表单中不展示的属性
FORM_EXCLUDED_CATEGORIES = (
    AttributeCategory.RELATION,
    AttributeCategory.COMPONENT,
    AttributeCategory.DYNAMIC_UNION,
)
FORM_EXCLUDED_FIELDS = ("createdAt", "updatedAt", "publishedAt", "locale")

# 未在模型定义中声明时使用的内置媒体模型
MEDIA_MODEL_ATTRIBUTES = {
    "name": {"type": "string"},
    "alternativeText": {"type": "string"},
    "caption": {"type": "string"},
    "width": {"type": "integer"},
    "height": {"type": "integer"},
    "hash": {"type": "string"},
    "ext": {"type": "string"},
    "mime": {"type": "string"},
    "size": {"type": "decimal"},
    "url": {"type": "string"},
}


class SchemaRegistry:
    """模型定义注册表"""

    def __init__(self, schema_data: Optional[Dict[str, Any]] = None):
        """
        Args:
            schema_data: 包含 models / components 节点的字典

        Raises:
            ValueError: 模型定义格式错误或属性类型未知
        """
        schema_data = schema_data or {}
        self._models: Dict[str, ModelDescriptor] = {}

        for model_id, model_def in (schema_data.get("models") or {}).items():
            self._models[model_id] = self._build_model(model_id, model_def or {}, is_component=False)

        for component_id, component_def in (schema_data.get("components") or {}).items():
            self._models[component_id] = self._build_model(component_id, component_def or {}, is_component=True)

        if MEDIA_MODEL_ID not in self._models:
            self._models[MEDIA_MODEL_ID] = self._build_model(
                MEDIA_MODEL_ID, {"attributes": MEDIA_MODEL_ATTRIBUTES}, is_component=False
            )

        logger.info(f"Schema registry loaded with {len(self._models)} models")

    @classmethod
    def from_file(cls, schema_file: Union[str, Path]) -> "SchemaRegistry":
        schema_path = Path(schema_file).absolute()
        if not schema_path.is_file():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")
        try:
            with open(schema_path, 'r', encoding='utf-8') as f:
                schema_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Schema file parse error: {str(e)} (file: {schema_path})")
        logger.info(f"Loaded schema file: {schema_path}")
        return cls(schema_data)

    @classmethod
    def from_config(cls, config: YAMLConfig) -> "SchemaRegistry":
        """
        按配置加载模型定义：schema.path 指向文件（相对路径基于配置文件所在目录），
        或 schema.models / schema.components 直接写在配置中
        """
        schema_config = config.get_schema_config() or {}
        schema_file = schema_config.get("path")
        if not schema_file:
            return cls(schema_config)

        schema_path = Path(schema_file)
        if not schema_path.is_absolute() and config.config_path != "<memory>":
            schema_path = Path(config.config_path).absolute().parent / schema_path
        return cls.from_file(schema_path)

    @staticmethod
    def _build_model(model_id: str, definition: Dict[str, Any], is_component: bool) -> ModelDescriptor:
        if not isinstance(definition, dict):
            raise ValueError(f"Model {model_id} definition must be a mapping")

        attributes = tuple(
            AttributeDescriptor.from_dict(name, attribute_def or {})
            for name, attribute_def in (definition.get("attributes") or {}).items()
        )

        if is_component:
            return ModelDescriptor(
                model_id=model_id, kind=ModelKind.COLLECTION, attributes=attributes, is_component=True
            )

        try:
            kind = ModelKind(definition.get("kind", ModelKind.COLLECTION.value))
        except ValueError:
            raise ValueError(f"Model {model_id} has unknown kind {definition.get('kind')!r}") from None

        plugin_options = (definition.get("pluginOptions") or {}).get("strapi-import-export") or {}
        identifying_field = definition.get("id_field") or plugin_options.get("idField") or ID_FIELD

        return ModelDescriptor(
            model_id=model_id,
            kind=kind,
            attributes=attributes,
            supports_draft_publish=bool(definition.get("draft_and_publish", False)),
            identifying_field=identifying_field,
        )

    # ========================================================================
    # 查询接口
    # ========================================================================

    def has_model(self, model_id: str) -> bool:
        return model_id in self._models

    def get_model(self, model_id: str) -> ModelDescriptor:
        """
        获取模型描述符

        Raises:
            UnknownModel: 模型不存在
        """
        try:
            return self._models[model_id]
        except KeyError:
            raise UnknownModel(model_id) from None

    def get_all_model_ids(self) -> List[str]:
        return list(self._models)

    def list_attributes(
        self,
        model_id: str,
        filter_types: Optional[TypeFilter] = None,
        exclude_types: Optional[TypeFilter] = None,
    ) -> List[AttributeDescriptor]:
        """
        按定义顺序列出模型属性

        Args:
            model_id: 模型标识
            filter_types: 只保留这些类别/类型的属性（None 表示不过滤）
            exclude_types: 排除这些类别/类型的属性

        Returns:
            属性描述符列表
        """
        attributes = list(self.get_model(model_id).attributes)
        if filter_types is not None:
            attributes = [a for a in attributes if _matches(a, filter_types)]
        if exclude_types:
            attributes = [a for a in attributes if not _matches(a, exclude_types)]
        return attributes

    def resolve_model_scope(self, model_id: str) -> List[str]:
        """整库标识展开为所有模型标识（不含组件），其他标识原样返回"""
        if model_id == WHOLE_DB_MODEL_ID:
            return [m for m in self.get_all_model_ids() if not self._models[m].is_component]
        return [model_id]

    def get_model_attributes(self, model_id: str) -> Dict[str, Any]:
        """
        上传表单使用的属性列表：可作为标识字段的属性名 + 当前配置的标识字段

        Returns:
            {"attribute_names": ["id", ...], "id_field": "..."}
        """
        model = self.get_model(model_id)
        attribute_names = [
            attribute.name
            for attribute in self.list_attributes(model_id, exclude_types=FORM_EXCLUDED_CATEGORIES)
            if attribute.name not in FORM_EXCLUDED_FIELDS
        ]
        return {
            "attribute_names": [ID_FIELD] + attribute_names,
            "id_field": model.identifying_field,
        }


def _matches(attribute: AttributeDescriptor, type_filter: TypeFilter) -> bool:
    for wanted in type_filter:
        if wanted is attribute.category or wanted is attribute.type:
            return True
        if isinstance(wanted, str) and wanted in (attribute.type.value, attribute.category.value):
            return True
    return False
