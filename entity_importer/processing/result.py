# entity_importer/processing/result.py
"""导入结果：只逐条记录失败，成功的记录不单独列出"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ImportFailure:
    error: str
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "data": self.data}


@dataclass
class ImportResult:
    failures: List[ImportFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def add_failure(self, error: Any, data: Any) -> None:
        self.failures.append(ImportFailure(str(error), data))

    def extend(self, failures: List[ImportFailure]) -> None:
        self.failures.extend(failures)

    def to_dict(self) -> Dict[str, Any]:
        return {"failures": [failure.to_dict() for failure in self.failures]}
