"""Operation outcome events.

Every generate, verify, resend and rate limit check emits one of these for
audit logging and metrics. Publishing is fire-and-forget: a failing publisher
never changes the outcome of the operation that produced the event.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class OperationEvent:
    """Structured outcome of a single operation.

    Attributes:
        operation: Operation name (generate, verify, resend, rate_limit)
        subject_id: Subject or rate limit key the operation acted on
        success: Whether the operation achieved its goal
        duration_ms: Wall time spent in the operation
        error_code: Machine-readable failure reason, if any
        occurred_at: When the event occurred
    """

    operation: str
    subject_id: str
    success: bool
    duration_ms: float
    error_code: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Ensure occurred_at is timezone-aware."""
        if not self.occurred_at.tzinfo:
            object.__setattr__(self, "occurred_at", self.occurred_at.replace(tzinfo=timezone.utc))

    @classmethod
    def create(
        cls,
        operation: str,
        subject_id: str,
        success: bool,
        started_at: float,
        finished_at: float,
        error_code: Optional[str] = None,
    ) -> "OperationEvent":
        """Factory method building an event from monotonic start/end readings."""
        return cls(
            operation=operation,
            subject_id=subject_id,
            success=success,
            duration_ms=round((finished_at - started_at) * 1000, 3),
            error_code=error_code,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data
