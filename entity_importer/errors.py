# entity_importer/errors.py
"""
导入流程的异常定义

每个异常同时继承最接近的内置异常，调用方按 ValueError / KeyError / LookupError 捕获时行为不变。
- 整体致命：UnsupportedFormat、InvalidShape、MalformedInput（在处理任何记录之前抛出）
- 单条记录致命：UnsupportedRelationType、InvalidRelationCardinality、CyclicReference、
  EntityNotFound、DisallowedMediaType（由编排层捕获并记录为失败条目）
"""


class DataImportError(Exception):
    """导入相关异常的基类"""


class UnsupportedFormat(DataImportError, ValueError):
    """请求的输入格式没有对应的解析器"""

    def __init__(self, format_name):
        self.format_name = format_name
        super().__init__(f"Data input format {format_name} is not supported.")


class InvalidShape(DataImportError, ValueError):
    """输入数据结构不符合要求（既不是对象也不是数组等）"""


class MalformedInput(DataImportError, ValueError):
    """输入文本无法按声明的格式解码"""


class UnsupportedRelationType(DataImportError, ValueError):
    """关系解析器收到了无法处理的属性类型"""

    def __init__(self, attribute_type):
        self.attribute_type = attribute_type
        super().__init__(f"Could not update or create relation of type {attribute_type}.")


class InvalidRelationCardinality(DataImportError, ValueError):
    """严格模式下，单值关系收到了数组输入"""


class CyclicReference(DataImportError, ValueError):
    """同一解析链中再次进入了同一个 (model_id, 标识值)"""

    def __init__(self, model_id, identifying_value):
        self.model_id = model_id
        self.identifying_value = identifying_value
        super().__init__(
            f"Cyclic reference detected: {model_id} with identifier {identifying_value!r} "
            f"is already being resolved higher up in the chain."
        )


class UnknownModel(DataImportError, KeyError):
    """schema 中不存在该模型标识"""

    def __init__(self, model_id):
        self.model_id = model_id
        super().__init__(model_id)

    def __str__(self):
        return f"Model {self.model_id} is not defined in the schema."


class EntityNotFound(DataImportError, LookupError):
    """按存储主键更新时记录不存在"""


class DisallowedMediaType(DataImportError, ValueError):
    """媒体文件类型不在属性允许的范围内"""


class PermissionDenied(DataImportError):
    """调用方没有导入某个模型的权限"""
