# entity_importer/repositories/entity_store.py
"""
实体存储接口

导入流程只依赖这里定义的五个操作，具体存储（SQLAlchemy、内存等）实现该接口。
实体统一表示为字典：{"id": 存储主键, 其他字段...}
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

Entity = Dict[str, Any]


class EntityStore(ABC):

    @abstractmethod
    def find_one(self, model_id: str, filters: Dict[str, Any]) -> Optional[Entity]:
        """按过滤条件返回第一条匹配的实体，不存在时返回 None"""

    @abstractmethod
    def find_many(self, model_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Entity]:
        """返回所有匹配的实体（按存储主键升序）"""

    @abstractmethod
    def create(self, model_id: str, data: Dict[str, Any]) -> Entity:
        """创建实体，存储主键由存储分配"""

    @abstractmethod
    def update(self, model_id: str, entity_id: Any, data: Dict[str, Any]) -> Entity:
        """
        按存储主键更新实体

        Raises:
            EntityNotFound: 实体不存在
        """

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """单条记录的写入边界；默认实现不做任何事务控制"""
        yield
