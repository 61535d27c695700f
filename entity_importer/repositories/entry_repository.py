# entity_importer/repositories/entry_repository.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from entity_importer.errors import EntityNotFound
from entity_importer.models.models import Entry
from entity_importer.models.schema import ID_FIELD
from entity_importer.repositories.base_repository import BaseRepository
from entity_importer.repositories.entity_store import Entity, EntityStore

logger = logging.getLogger(__name__)


class EntryRepository(BaseRepository[Entry], EntityStore):
    """
    基于 entry 表的实体存储

    - id 过滤条件比较存储主键（数字字符串转为 int，非数字永不匹配）
    - 其他过滤条件按值的 Python 类型比较 JSON 文档中的字段
    - create 忽略传入的 id；update 合并字段，不改变存储主键
    """

    def _get_model(self) -> Type[Entry]:
        return Entry

    def get_pk_field(self) -> str:
        return "id"

    # ========================================================================
    # 过滤条件
    # ========================================================================

    @staticmethod
    def _coerce_pk(value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    @staticmethod
    def _document_criterion(key: str, value: Any):
        """按值类型选择 JSON 字段的比较方式；不支持在 SQL 中比较的类型返回 None"""
        field = Entry.document[key]
        if isinstance(value, bool):
            return field.as_boolean() == value
        if isinstance(value, int):
            return field.as_integer() == value
        if isinstance(value, float):
            return field.as_float() == value
        if isinstance(value, str):
            return field.as_string() == value
        return None

    def _query_entries(self, model_id: str, filters: Optional[Dict[str, Any]]) -> List[Entry]:
        filters = dict(filters or {})
        criteria = [Entry.model_id == model_id]

        if ID_FIELD in filters:
            pk_value = self._coerce_pk(filters.pop(ID_FIELD))
            if pk_value is None:
                return []
            criteria.append(Entry.id == pk_value)

        # None、对象、数组等值在内存中比较
        in_memory = {}
        for key, value in filters.items():
            criterion = self._document_criterion(key, value)
            if criterion is None:
                in_memory[key] = value
            else:
                criteria.append(criterion)

        entries = self.query_filter(*criteria)
        if in_memory:
            entries = [
                entry for entry in entries
                if all((entry.document or {}).get(key) == value for key, value in in_memory.items())
            ]
        return entries

    # ========================================================================
    # EntityStore 接口
    # ========================================================================

    def find_one(self, model_id: str, filters: Dict[str, Any]) -> Optional[Entity]:
        entries = self._query_entries(model_id, filters)
        return entries[0].to_entity() if entries else None

    def find_many(self, model_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Entity]:
        return [entry.to_entity() for entry in self._query_entries(model_id, filters)]

    def create(self, model_id: str, data: Dict[str, Any]) -> Entity:
        document = {key: value for key, value in data.items() if key != ID_FIELD}
        entry = self.add(Entry(model_id=model_id, document=document))
        logger.debug(f"Created {model_id} entity id={entry.id}")
        return entry.to_entity()

    def update(self, model_id: str, entity_id: Any, data: Dict[str, Any]) -> Entity:
        pk_value = self._coerce_pk(entity_id)
        entry = self.get_by_pk(pk_value) if pk_value is not None else None
        if entry is None or entry.model_id != model_id:
            raise EntityNotFound(f"Entity {model_id} with id {entity_id!r} does not exist.")

        changes = {key: value for key, value in data.items() if key != ID_FIELD}
        # 重新赋值整个文档，JSON 列才会被识别为已修改
        entry.document = {**(entry.document or {}), **changes}
        self.flush()
        logger.debug(f"Updated {model_id} entity id={entry.id}")
        return entry.to_entity()

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """一条记录一个事务：成功提交，失败回滚后原样抛出"""
        try:
            yield
            self.db_session.commit()
        except Exception:
            try:
                self.db_session.rollback()
            except SQLAlchemyError as e:
                logger.error(f"Failed to roll back entry session: {str(e)}", exc_info=True)
            raise


def get_entry_repository(db_session: Session) -> EntryRepository:
    return EntryRepository(db_session)
