"""数据导入服务
负责组合解析器、upsert 引擎和媒体服务，实现完整的导入业务逻辑：
- import_data：按格式解析后逐条写入，单条失败不影响其他记录
- import_data_v2：带版本号的导出包，两遍导入（先写字段，再写关联）
- handle_import_request：面向上传表单/HTTP 层的入口
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from entity_importer.errors import InvalidShape, PermissionDenied, UnknownModel
from entity_importer.models.schema import (
    AUDIT_ACTOR_FIELDS,
    COMPONENT_TAG_FIELD,
    ID_FIELD,
    MEDIA_MODEL_ID,
    PUBLISHED_AT_FIELD,
    WHOLE_DB_MODEL_ID,
    RELATIONAL_CATEGORIES,
    AttributeCategory,
    AttributeDescriptor,
    ModelDescriptor,
)
from entity_importer.processing.context import ActingUser, ImportContext, ImportOptions
from entity_importer.processing.parsers import canonical_format, get_parser
from entity_importer.processing.parsers.json_parser import VERSIONED_ENVELOPE
from entity_importer.processing.publish_state import effective_import_as_drafts, normalize_publish_state
from entity_importer.processing.result import ImportFailure, ImportResult
from entity_importer.repositories.entity_store import EntityStore
from entity_importer.services.media_service import MediaService
from entity_importer.services.schema_service import SchemaRegistry
from entity_importer.services.upsert_service import UpsertService
from entity_importer.utils.logging_config import log_import_result
from entity_importer.utils.value_utils import is_mapping, is_sequence, to_list
from entity_importer.utils.yaml_config import DEFAULT_IMPORT_CONFIG, YAMLConfig

PermissionChecker = Callable[[str], bool]


class ImportService:
    """数据导入服务"""

    def __init__(
        self,
        schema: SchemaRegistry,
        store: EntityStore,
        media_service: Optional[MediaService] = None,
        config: Optional[YAMLConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化数据导入服务

        Args:
            schema: 模型定义注册表
            store: 实体存储
            media_service: 媒体服务，默认基于同一存储创建
            config: 配置实例（读取 import / foreign_dump 节点），为空时使用默认值
            logger: 日志器，默认使用模块日志器
        """
        self.schema = schema
        self.store = store
        self.media_service = media_service or MediaService(store)
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.import_config = config.get_import_config() if config else dict(DEFAULT_IMPORT_CONFIG)
        self.foreign_dump = config.get_foreign_dump_config() if config else {}
        self.upsert_service = UpsertService()

    # ========================================================================
    # 上下文
    # ========================================================================

    def _build_context(
        self,
        model_id: str,
        format_name: Optional[str],
        acting_user: Optional[ActingUser],
        identifying_field: str,
        import_as_drafts: bool,
    ) -> ImportContext:
        options = ImportOptions(
            model_id=model_id,
            format=format_name,
            identifying_field=identifying_field,
            import_as_drafts=import_as_drafts,
            acting_user=acting_user,
        )
        return ImportContext(
            options,
            schema=self.schema,
            store=self.store,
            media_service=self.media_service,
            logger=self.logger,
            strict_relation_cardinality=bool(self.import_config.get("strict_relation_cardinality")),
            detect_cycles=bool(self.import_config.get("detect_cycles", True)),
            foreign_dump=self.foreign_dump,
        )

    def _drafts_option(self, import_as_drafts: Optional[bool]) -> bool:
        if import_as_drafts is None:
            return bool(self.import_config.get("import_as_drafts", True))
        return bool(import_as_drafts)

    # ========================================================================
    # 解析
    # ========================================================================

    def parse_input_data(self, format_name: str, raw: Any, *, model_id: str, import_as_drafts: Optional[bool] = True) -> Any:
        """
        按格式解析原始输入

        Args:
            format_name: 输入格式（csv / jso / json / postgres 或描述性名称）
            raw: 原始输入
            model_id: 目标模型标识
            import_as_drafts: 是否以草稿导入

        Returns:
            规范化后的记录列表或对象

        Raises:
            UnsupportedFormat: 格式不受支持
        """
        model = None if model_id == WHOLE_DB_MODEL_ID else self.schema.get_model(model_id)
        requested_drafts = self._drafts_option(import_as_drafts)
        drafts = effective_import_as_drafts(model, requested_drafts) if model else requested_drafts
        context = self._build_context(model_id, format_name, None, ID_FIELD, drafts)
        return get_parser(format_name, context).parse(raw)

    def get_model_attributes(self, model_id: str) -> Dict[str, Any]:
        """上传表单使用的属性列表"""
        return self.schema.get_model_attributes(model_id)

    # ========================================================================
    # 导入
    # ========================================================================

    def import_data(
        self,
        raw: Any,
        *,
        model_id: str,
        format: str,
        acting_user: Optional[ActingUser] = None,
        identifying_field: Optional[str] = None,
        import_as_drafts: Optional[bool] = True,
    ) -> ImportResult:
        """
        导入一批数据

        Args:
            raw: 原始输入
            model_id: 目标模型标识（plugin::upload.file 走媒体导入）
            format: 输入格式
            acting_user: 执行导入的用户
            identifying_field: 标识字段，默认使用模型配置的标识字段
            import_as_drafts: 是否以草稿导入（模型不支持草稿时强制为 False）

        Returns:
            导入结果（只包含失败条目）

        Raises:
            UnsupportedFormat / InvalidShape / MalformedInput / UnknownModel: 在处理任何记录之前抛出
        """
        format_name = canonical_format(format)
        # 整库标识只接受带版本号的导出包
        model = None if model_id == WHOLE_DB_MODEL_ID else self.schema.get_model(model_id)
        requested_drafts = self._drafts_option(import_as_drafts)
        drafts = effective_import_as_drafts(model, requested_drafts) if model else requested_drafts
        effective_field = identifying_field or (model.identifying_field if model else ID_FIELD)

        self.logger.info(
            f"Model {model_id} - draftAndPublish: {bool(model and model.supports_draft_publish)}, importAsDrafts: {drafts}"
        )

        context = self._build_context(model_id, format_name, acting_user, effective_field, requested_drafts)
        parser = get_parser(format_name, context.with_options(import_as_drafts=drafts))
        parsed = parser.parse(raw)

        if is_mapping(parsed) and parsed.get("version") == VERSIONED_ENVELOPE:
            return self.import_data_v2(
                parsed,
                model_id=model_id,
                acting_user=acting_user,
                identifying_field=identifying_field,
                import_as_drafts=requested_drafts,
            )
        if model is None:
            raise InvalidShape(f"Importing into {model_id} needs a versioned export (version {VERSIONED_ENVELOPE}).")

        records = to_list(parsed)
        result = ImportResult()
        result.extend(parser.failures)

        self.logger.info(f"Importing {format_name} data for {model_id} - {len(records)} items to process")
        if model_id == MEDIA_MODEL_ID:
            self._import_media(records, context, result)
        else:
            self._import_records(records, model, context, result)

        log_import_result(model_id, len(records) + len(parser.failures), result.failure_count, self.logger)
        return result

    def _import_media(self, records: List[Any], context: ImportContext, result: ImportResult) -> None:
        for record in records:
            try:
                with self.store.unit_of_work():
                    self.media_service.find_or_import(record, context.acting_user)
            except Exception as e:
                self.logger.error(f"Error importing media {record!r}: {str(e)}", exc_info=True)
                result.add_failure(e, record)

    def _import_records(
        self, records: List[Any], model: ModelDescriptor, context: ImportContext, result: ImportResult
    ) -> None:
        identifying_field = context.options.identifying_field
        total = len(records)

        for index, record in enumerate(records, start=1):
            if is_mapping(record):
                record = dict(record)
                if not model.supports_draft_publish:
                    record.pop(PUBLISHED_AT_FIELD, None)
                label = record.get(identifying_field) or record.get("name") or record.get(ID_FIELD) or "unknown"
            else:
                label = "unknown"
            self.logger.debug(f"Processing item {index}/{total}: {label}")

            try:
                with self.store.unit_of_work():
                    self.upsert_service.upsert(model.model_id, record, context, identifying_field)
            except Exception as e:
                self.logger.error(f"Error processing item {index}/{total}: {str(e)}", exc_info=True)
                result.add_failure(e, record)

    # ========================================================================
    # 带版本号的导出包
    # ========================================================================

    def import_data_v2(
        self,
        envelope: Dict[str, Any],
        *,
        model_id: str,
        acting_user: Optional[ActingUser] = None,
        identifying_field: Optional[str] = None,
        import_as_drafts: Optional[bool] = True,
    ) -> ImportResult:
        """
        导入带版本号的导出包：{"version": 2, "data": {model_id: {export_id: entry}}}

        第一遍先导入媒体，再写入其他模型的非关系字段，记录 (model_id, export_id) -> 存储主键；
        第二遍按映射改写关联/媒体引用，组件作为嵌套记录解析，然后更新实体。

        Args:
            envelope: 导出包
            model_id: 请求的模型标识（可以是整库标识）
            acting_user: 执行导入的用户
            identifying_field: 请求模型的标识字段
            import_as_drafts: 是否以草稿导入

        Returns:
            导入结果

        Raises:
            InvalidShape: 导出包缺少 data 对象
        """
        if not is_mapping(envelope) or not is_mapping(envelope.get("data")):
            raise InvalidShape("A versioned import needs a 'data' object keyed by model identifier.")

        data = envelope["data"]
        drafts = self._drafts_option(import_as_drafts)
        context = self._build_context(model_id, "json", acting_user, identifying_field or ID_FIELD, drafts)
        result = ImportResult()
        id_map: Dict[Tuple[str, str], Any] = {}

        ordered_models = sorted(data, key=lambda m: 0 if m == MEDIA_MODEL_ID else 1)
        models = self._collect_v2_models(ordered_models, data, result)

        self.logger.info(f"Importing versioned export for {model_id}: {len(models)} models")

        for entry_model_id, model in models:
            entries = data[entry_model_id]
            if model.model_id == MEDIA_MODEL_ID:
                self._import_v2_media(entries, context, id_map, result)
            else:
                field = identifying_field if identifying_field and entry_model_id == model_id else model.identifying_field
                self._import_v2_fields(model, entries, field, context, id_map, result)

        remapper = _ReferenceRemapper(self.schema, data, id_map)
        for entry_model_id, model in models:
            if model.model_id != MEDIA_MODEL_ID:
                self._import_v2_relations(model, data[entry_model_id], remapper, context, id_map, result)

        log_import_result(model_id, sum(len(data[m]) for m, _ in models), result.failure_count, self.logger)
        return result

    def _collect_v2_models(
        self, ordered_models: List[str], data: Dict[str, Any], result: ImportResult
    ) -> List[Tuple[str, ModelDescriptor]]:
        """校验导出包中的模型；组件只作为嵌套记录导入"""
        models = []
        for entry_model_id in ordered_models:
            entries = data[entry_model_id]
            if not is_mapping(entries):
                result.add_failure(f"Entries of {entry_model_id} must be an object keyed by export id.", entries)
                continue
            try:
                model = self.schema.get_model(entry_model_id)
            except UnknownModel as e:
                self.logger.error(str(e))
                result.add_failure(e, entries)
                continue
            if not model.is_component:
                models.append((entry_model_id, model))
        return models

    def _import_v2_media(self, entries, context, id_map, result) -> None:
        for export_id, entry in entries.items():
            try:
                with self.store.unit_of_work():
                    descriptor = {k: v for k, v in entry.items() if k != ID_FIELD} if is_mapping(entry) else entry
                    media = self.media_service.find_or_import(descriptor, context.acting_user)
                id_map[(MEDIA_MODEL_ID, str(export_id))] = media["id"]
            except Exception as e:
                self.logger.error(f"Error importing media {export_id}: {str(e)}", exc_info=True)
                result.add_failure(e, entry)

    def _import_v2_fields(self, model, entries, identifying_field, context, id_map, result) -> None:
        relational = {a.name for a in self.schema.list_attributes(model.model_id, filter_types=RELATIONAL_CATEGORIES)}
        for export_id, entry in entries.items():
            try:
                if not is_mapping(entry):
                    raise InvalidShape(f"Entry {export_id} of {model.model_id} must be an object.")
                fields = {k: v for k, v in entry.items() if k not in relational and k != ID_FIELD}
                normalize_publish_state(fields, model, context.import_as_drafts)
                with self.store.unit_of_work():
                    entity = self.upsert_service.write(model, fields, identifying_field, context)
                id_map[(model.model_id, str(export_id))] = entity["id"]
            except Exception as e:
                self.logger.error(f"Error importing {model.model_id} entry {export_id}: {str(e)}", exc_info=True)
                result.add_failure(e, entry)

    def _import_v2_relations(self, model, entries, remapper, context, id_map, result) -> None:
        relational = self.schema.list_attributes(model.model_id, filter_types=RELATIONAL_CATEGORIES)
        if not relational:
            return
        for export_id, entry in entries.items():
            store_id = id_map.get((model.model_id, str(export_id)))
            if store_id is None:
                continue
            try:
                with self.store.unit_of_work():
                    updates = {}
                    for attribute in relational:
                        if attribute.name not in entry:
                            continue
                        value = remapper.remap(attribute, entry[attribute.name])
                        updates[attribute.name] = self.upsert_service.resolvers.resolve(attribute, value, context)
                    if updates:
                        self.store.update(model.model_id, store_id, updates)
            except Exception as e:
                self.logger.error(f"Error linking {model.model_id} entry {export_id}: {str(e)}", exc_info=True)
                result.add_failure(e, entry)

    # ========================================================================
    # 上传表单入口
    # ========================================================================

    def handle_import_request(
        self,
        payload: Dict[str, Any],
        acting_user: Any,
        permission_checker: Optional[PermissionChecker] = None,
    ) -> Dict[str, Any]:
        """
        处理一次上传表单提交

        Args:
            payload: {"slug", "data", "format", "fileType", "idField", "importAsDrafts"}，
                     也可以整体包在 "data" 键下
            acting_user: ActingUser 或 {"id": ..., "email": ...}
            permission_checker: 可选，model_id -> 是否允许创建和更新

        Returns:
            {"failures": [...]}

        Raises:
            InvalidShape: 缺少 slug
            PermissionDenied: 没有某个模型的导入权限
        """
        request = payload
        if "slug" not in payload and is_mapping(payload.get("data")) and "slug" in payload["data"]:
            request = payload["data"]

        slug = request.get("slug")
        if not slug:
            raise InvalidShape("Import request needs a 'slug'.")
        user = _to_acting_user(acting_user)

        if permission_checker is not None:
            for scoped_model_id in self.schema.resolve_model_scope(slug):
                if not permission_checker(scoped_model_id):
                    raise PermissionDenied(f"Not allowed to create and update {scoped_model_id}.")

        import_as_drafts = request.get("importAsDrafts", True)
        format_name = resolve_request_format(request.get("format"), request.get("fileType"))
        self.logger.info(
            f"Import request received - slug: {slug}, format: {format_name}, fileType: {request.get('fileType')}, "
            f"idField: {request.get('idField')}, importAsDrafts: {import_as_drafts}"
        )

        result = self.import_data(
            request.get("data"),
            model_id=slug,
            format=format_name,
            acting_user=user,
            identifying_field=request.get("idField") or None,
            import_as_drafts=import_as_drafts,
        )
        return result.to_dict()


def resolve_request_format(format_name: Optional[str], file_type: Optional[str]) -> Optional[str]:
    """上传文件类型优先于表单中的格式"""
    if file_type == "postgres":
        return "postgres"
    if file_type == "csv":
        return "csv"
    if file_type == "strapi" and format_name == "json":
        return "json"
    return format_name


def _to_acting_user(acting_user: Any) -> Optional[ActingUser]:
    if acting_user is None or isinstance(acting_user, ActingUser):
        return acting_user
    if is_mapping(acting_user):
        return ActingUser(id=acting_user.get("id"), email=acting_user.get("email"))
    return ActingUser(id=acting_user)


class _ReferenceRemapper:
    """把导出包中的引用（导出 id）改写为本库的存储主键"""

    def __init__(self, schema: SchemaRegistry, data: Dict[str, Any], id_map: Dict[Tuple[str, str], Any]):
        self.schema = schema
        self.data = data
        self.id_map = id_map

    def remap(self, attribute: AttributeDescriptor, value: Any) -> Any:
        if value is None or attribute.name in AUDIT_ACTOR_FIELDS:
            return value

        category = attribute.category
        if category is AttributeCategory.RELATION:
            return self._remap_references(attribute.target, value)
        if category is AttributeCategory.MEDIA:
            return self._remap_references(MEDIA_MODEL_ID, value)
        if category is AttributeCategory.COMPONENT:
            components = [self._component_payload(attribute.target, entry) for entry in to_list(value)]
            components = [c for c in components if c is not None]
            return components if is_sequence(value) else (components[0] if components else None)
        if category is AttributeCategory.DYNAMIC_UNION:
            entries = []
            for entry in to_list(value):
                if is_mapping(entry) and entry.get(COMPONENT_TAG_FIELD):
                    payload = self._component_payload(entry[COMPONENT_TAG_FIELD], entry)
                    if payload is not None:
                        entries.append({**payload, COMPONENT_TAG_FIELD: entry[COMPONENT_TAG_FIELD]})
                else:
                    entries.append(entry)
            return entries
        return value

    def _remap_references(self, target: str, value: Any) -> Any:
        if is_sequence(value):
            mapped = [self._lookup(target, ref) for ref in value]
            return [ref for ref in mapped if ref is not None]
        return self._lookup(target, value)

    def _lookup(self, target: str, ref: Any) -> Optional[Any]:
        if is_mapping(ref):
            ref = ref.get(ID_FIELD)
        if ref is None:
            return None
        return self.id_map.get((target, str(ref)))

    def _component_payload(self, component_id: str, entry: Any) -> Optional[Dict[str, Any]]:
        """组件条目：去掉导出 id，改写内部引用；数字引用指向导出包中单独列出的组件"""
        if not is_mapping(entry):
            listed = self.data.get(component_id)
            entry = listed.get(str(entry)) if is_mapping(listed) else None
            if not is_mapping(entry):
                return None

        payload = {k: v for k, v in entry.items() if k not in (ID_FIELD, COMPONENT_TAG_FIELD)}
        if not self.schema.has_model(component_id):
            return payload
        for attribute in self.schema.list_attributes(component_id, filter_types=RELATIONAL_CATEGORIES):
            if attribute.name in payload:
                payload[attribute.name] = self.remap(attribute, payload[attribute.name])
        return payload


__all__ = ["ImportService", "ImportFailure", "ImportResult", "resolve_request_format"]
