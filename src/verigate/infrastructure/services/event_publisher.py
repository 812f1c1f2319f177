"""Event Publisher Infrastructure Service.

Concrete implementations of `IOperationEventPublisher`. Publishing never
raises into the caller: a failing sink is logged and the operation that
produced the event carries on.
"""

import asyncio
from typing import Iterable, List, Optional, Set

import structlog

from verigate.domain.events.operation_events import OperationEvent
from verigate.domain.interfaces.collaborators import IOperationEventPublisher

logger = structlog.get_logger(__name__)


class StructlogEventPublisher(IOperationEventPublisher):
    """Writes each operation event as a structured audit log line."""

    def __init__(self, logger_name: str = "verigate.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def publish(self, event: OperationEvent) -> None:
        try:
            log = self._logger.info if event.success else self._logger.warning
            log("Operation event", **event.to_dict())
        except Exception as e:
            logger.error("Failed to publish operation event", operation=event.operation, error=str(e))


class InMemoryEventPublisher(IOperationEventPublisher):
    """In-memory event publisher for development and testing.

    Keeps every published event for inspection and optionally restricts
    which operations are recorded.
    """

    def __init__(self, operations: Optional[Iterable[str]] = None):
        self._published_events: List[OperationEvent] = []
        self._operation_filter: Set[str] = set(operations or ())

    async def publish(self, event: OperationEvent) -> None:
        try:
            if self._operation_filter and event.operation not in self._operation_filter:
                logger.debug("Event filtered out", operation=event.operation)
                return
            self._published_events.append(event)
            logger.debug(
                "Operation event published",
                operation=event.operation,
                subject_id=event.subject_id,
                success=event.success,
            )
        except Exception as e:
            logger.error("Failed to publish operation event", operation=event.operation, error=str(e))

    def get_published_events(self, operation: Optional[str] = None) -> List[OperationEvent]:
        if operation is None:
            return list(self._published_events)
        return [e for e in self._published_events if e.operation == operation]

    def clear_events(self) -> None:
        self._published_events.clear()


class CompositeEventPublisher(IOperationEventPublisher):
    """Fans an event out to several publishers concurrently."""

    def __init__(self, publishers: Iterable[IOperationEventPublisher]):
        self._publishers = list(publishers)

    async def publish(self, event: OperationEvent) -> None:
        results = await asyncio.gather(
            *(p.publish(event) for p in self._publishers), return_exceptions=True
        )
        for publisher, result in zip(self._publishers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Event publisher failed",
                    publisher=type(publisher).__name__,
                    operation=event.operation,
                    error=str(result),
                )
