# entity_importer/models/models.py
"""
实体存储的数据库模型

所有模型的记录统一保存在 entry 表：model_id 区分模型，document 保存字段内容（JSON）。
"""

from sqlalchemy import Column, String, Integer, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Entry(Base):
    """存储任意模型的一条记录"""
    __tablename__ = 'entry'

    id = Column(Integer, primary_key=True, autoincrement=True, comment="存储主键（由数据库分配）")
    model_id = Column(String(255), nullable=False, comment="模型标识 (e.g., api::article.article)")
    document = Column(JSON, nullable=False, default=dict, comment="字段内容")
    created_at = Column(DateTime, default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime, default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        Index('idx_entry_model', 'model_id'),
        {'mysql_charset': 'utf8mb4', 'mysql_engine': 'InnoDB'}
    )

    def to_entity(self) -> dict:
        """转换为对外的实体字典：{"id": 主键, **document}"""
        return {"id": self.id, **(self.document or {})}
