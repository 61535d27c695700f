# entity_importer/processing/context.py
"""
导入上下文

每次导入调用创建一个 ImportContext，显式传递给解析器、关系解析器和 upsert 引擎，
不依赖任何进程级的全局状态。
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from entity_importer.errors import CyclicReference
from entity_importer.models.schema import ID_FIELD


@dataclass(frozen=True)
class ActingUser:
    """执行导入的用户（写入 createdBy / updatedBy）"""
    id: Any
    email: Optional[str] = None


@dataclass(frozen=True)
class ImportOptions:
    """单次导入的选项，运行期间不可变"""
    model_id: str
    format: Optional[str] = None
    identifying_field: str = ID_FIELD
    import_as_drafts: bool = True
    acting_user: Optional[ActingUser] = None


class ImportContext:
    """单次导入调用的上下文"""

    def __init__(
        self,
        options: ImportOptions,
        schema,
        store=None,
        media_service=None,
        logger: Optional[logging.Logger] = None,
        strict_relation_cardinality: bool = False,
        detect_cycles: bool = True,
        foreign_dump: Optional[Dict[str, Any]] = None,
    ):
        self.options = options
        self.schema = schema
        self.store = store
        self.media_service = media_service
        self.logger = logger or logging.getLogger("entity_importer.import")
        self.strict_relation_cardinality = strict_relation_cardinality
        self.detect_cycles = detect_cycles
        # 外部数据库导出的字段映射（foreign_dump 节点）
        self.foreign_dump = foreign_dump or {}
        self._chain: List[Tuple[str, str]] = []

    @property
    def acting_user(self) -> Optional[ActingUser]:
        return self.options.acting_user

    @property
    def model_id(self) -> str:
        return self.options.model_id

    @property
    def import_as_drafts(self) -> bool:
        return self.options.import_as_drafts

    def with_options(self, **changes) -> "ImportContext":
        """返回替换了部分选项的新上下文（共享 schema、store、logger 等协作者）"""
        values = {
            "model_id": self.options.model_id,
            "format": self.options.format,
            "identifying_field": self.options.identifying_field,
            "import_as_drafts": self.options.import_as_drafts,
            "acting_user": self.options.acting_user,
        }
        values.update(changes)
        return ImportContext(
            ImportOptions(**values),
            schema=self.schema,
            store=self.store,
            media_service=self.media_service,
            logger=self.logger,
            strict_relation_cardinality=self.strict_relation_cardinality,
            detect_cycles=self.detect_cycles,
            foreign_dump=self.foreign_dump,
        )

    @contextmanager
    def resolving(self, model_id: str, identifying_value: Any) -> Iterator[None]:
        """
        标记 (model_id, 标识值) 正在解析中；同一解析链中再次进入时抛出 CyclicReference。
        没有标识值的记录无法形成环，不做检查。
        """
        if not self.detect_cycles or identifying_value is None or identifying_value == "":
            yield
            return

        key = (model_id, str(identifying_value))
        if key in self._chain:
            raise CyclicReference(model_id, identifying_value)
        self._chain.append(key)
        try:
            yield
        finally:
            self._chain.pop()
