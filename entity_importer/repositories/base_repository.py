# entity_importer/repositories/base_repository.py
from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Any, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

# 泛型：绑定具体的 ORM 模型类
ModelType = TypeVar("ModelType")

logger = logging.getLogger(__name__)


class BaseRepository(ABC, Generic[ModelType]):
    """
    抽象基础 Repository 类
    封装通用的查询与写入操作，具体表的 Repository 继承此类

    设计原则：
    - 不创建 session，由外部传入
    - 不调用 commit / rollback，事务由上层（Service 或 contextmanager）控制
    - SQLAlchemyError 记录日志后原样抛出
    """

    def __init__(self, db_session: Session):
        """
        :param db_session: 数据库会话（必须由上层传入）
        :raises ValueError: 如果 session 为 None
        """
        if db_session is None:
            raise ValueError("db_session cannot be None. Must be provided by caller.")
        self.db_session = db_session
        self.model: Type[ModelType] = self._get_model()

    @abstractmethod
    def _get_model(self) -> Type[ModelType]:
        """子类必须实现：返回对应的 ORM 模型类"""
        raise NotImplementedError("Subclasses must implement _get_model()")

    @abstractmethod
    def get_pk_field(self) -> str:
        """子类必须实现：返回主键字段名"""
        raise NotImplementedError("Subclasses must implement get_pk_field()")

    # ========================================================================
    # 存在性检查
    # ========================================================================

    def exists_by_pk(self, pk_value: Any) -> bool:
        return self.get_by_pk(pk_value) is not None

    # ========================================================================
    # 查询操作
    # ========================================================================

    def get_by_pk(self, pk_value: Any) -> Optional[ModelType]:
        """
        根据主键获取单条记录
        :param pk_value: 主键值
        :return: ORM 实例或 None
        """
        try:
            filter_condition = {self.get_pk_field(): pk_value}
            return self.db_session.query(self.model).filter_by(**filter_condition).first()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to query {self.model.__name__} by {self.get_pk_field()}={pk_value}: {str(e)}",
                exc_info=True
            )
            raise

    def query_filter(self, *criteria, **filter_conditions) -> List[ModelType]:
        """
        通用条件查询（AND 条件），按主键升序返回
        :param criteria: SQLAlchemy 表达式
        :param filter_conditions: 字段=值
        :return: 匹配的记录列表
        """
        try:
            query = self.db_session.query(self.model)
            if filter_conditions:
                query = query.filter_by(**filter_conditions)
            if criteria:
                query = query.filter(*criteria)
            pk_column = getattr(self.model, self.get_pk_field())
            return query.order_by(pk_column).all()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to query {self.model.__name__} with {filter_conditions}: {str(e)}",
                exc_info=True
            )
            raise

    def count(self, **filter_by) -> int:
        """
        统计记录数
        :param filter_by: 可选过滤条件
        :return: 数量
        """
        try:
            query = self.db_session.query(self.model)
            if filter_by:
                query = query.filter_by(**filter_by)
            return query.count()
        except SQLAlchemyError as e:
            logger.error(f"Failed to count {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    # ========================================================================
    # 写入操作
    # ========================================================================

    def add(self, record: ModelType) -> ModelType:
        """
        添加记录并 flush，使数据库分配的主键立即可用
        :param record: 要插入的 ORM 实例
        :return: 插入后的实例
        """
        try:
            self.db_session.add(record)
            self.db_session.flush()
            logger.debug(f"Inserted {self.model.__name__}.{self.get_pk_field()}={getattr(record, self.get_pk_field())}")
            return record
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    def flush(self) -> None:
        try:
            self.db_session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to flush {self.model.__name__}: {str(e)}", exc_info=True)
            raise
