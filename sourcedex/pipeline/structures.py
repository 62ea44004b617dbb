"""Data contracts for run stages."""
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class TaskStatus(Enum):
    """Status of a run stage or of one unit of work inside it."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of a single stage of a run.

    JSON-serializable through to_dict() for log and test consumption.
    """
    name: str
    status: TaskStatus
    elapsed: float = 0.0
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        d = asdict(self)
        d['status'] = self.status.value
        return d

    @property
    def success(self) -> bool:
        """True if the stage completed successfully."""
        return self.status == TaskStatus.SUCCESS
