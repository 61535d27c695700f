"""entity_importer：把外部导出数据（CSV、JSON 导出、PostgreSQL 表导出）按模型定义导入实体存储"""

__version__ = "1.0.0"
