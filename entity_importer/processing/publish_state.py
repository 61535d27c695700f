# entity_importer/processing/publish_state.py
"""发布状态字段（publishedAt）的处理规则，解析阶段和写入前各执行一次"""

from typing import Any, Dict

from entity_importer.models.schema import ModelDescriptor, PUBLISHED_AT_FIELD


def normalize_publish_state(record: Dict[str, Any], model: ModelDescriptor, import_as_drafts: bool) -> Dict[str, Any]:
    """
    原地调整记录的 publishedAt 字段并返回该记录

    - 模型不支持草稿：删除字段
    - 支持草稿且以草稿导入：置为 None（未发布）
    - 支持草稿且不以草稿导入：保持原值
    """
    if not model.supports_draft_publish:
        record.pop(PUBLISHED_AT_FIELD, None)
    elif import_as_drafts:
        record[PUBLISHED_AT_FIELD] = None
    return record


def effective_import_as_drafts(model: ModelDescriptor, import_as_drafts: bool) -> bool:
    """模型不支持草稿时，草稿导入选项强制为 False"""
    return bool(import_as_drafts) and model.supports_draft_publish
