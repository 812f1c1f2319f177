"""Buffered metrics publisher.

Collects operation events in memory and flushes aggregated counters on a
fixed interval, or earlier when the buffer fills. Flushing runs in a
background asyncio task owned by the application lifespan, never inside the
operation that produced the event.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog

from verigate.domain.events.operation_events import OperationEvent
from verigate.domain.interfaces.collaborators import IOperationEventPublisher

logger = structlog.get_logger(__name__)

MetricsSink = Callable[[Dict[str, Any]], Awaitable[None]]


class BufferedMetricsPublisher(IOperationEventPublisher):
    """Batches operation events into periodic metric summaries.

    Args:
        flush_interval_seconds: Period of the background flush
        max_buffer_size: Buffer size that triggers an immediate flush
        high_latency_ms: Events slower than this are logged as warnings
        sink: Optional coroutine receiving each summary; summaries are
            logged when no sink is given
    """

    def __init__(
        self,
        flush_interval_seconds: float = 300.0,
        max_buffer_size: int = 1000,
        high_latency_ms: float = 5000.0,
        sink: Optional[MetricsSink] = None,
    ):
        self._flush_interval = flush_interval_seconds
        self._max_buffer_size = max_buffer_size
        self._high_latency_ms = high_latency_ms
        self._sink = sink
        self._buffer: List[OperationEvent] = []
        self._task: Optional[asyncio.Task] = None
        self._pending_flushes: Set[asyncio.Task] = set()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def pending_flushes(self) -> int:
        return len(self._pending_flushes)

    async def publish(self, event: OperationEvent) -> None:
        self._buffer.append(event)
        if event.duration_ms > self._high_latency_ms:
            logger.warning(
                "High latency operation",
                operation=event.operation,
                subject_id=event.subject_id,
                duration_ms=event.duration_ms,
            )
        if len(self._buffer) >= self._max_buffer_size:
            # publish never awaits the sink.
            task = asyncio.create_task(self._emit(self._drain()))
            self._pending_flushes.add(task)
            task.add_done_callback(self._pending_flushes.discard)

    async def flush(self) -> Optional[Dict[str, Any]]:
        """Aggregate and emit the buffered events.

        Returns:
            The summary that was emitted, or None if the buffer was empty
        """
        events = self._drain()
        if not events:
            return None
        return await self._emit(events)

    def _drain(self) -> List[OperationEvent]:
        events, self._buffer = self._buffer, []
        return events

    async def _emit(self, events: List[OperationEvent]) -> Dict[str, Any]:
        summary = self.summarize(events)
        try:
            if self._sink is not None:
                await self._sink(summary)
            else:
                logger.info("Operation metrics", **summary)
        except Exception as e:
            logger.error("Failed to flush operation metrics", error=str(e), event_count=len(events))
        return summary

    @staticmethod
    def summarize(events: List[OperationEvent]) -> Dict[str, Any]:
        per_operation: Dict[str, Dict[str, Any]] = defaultdict(
            lambda: {"total": 0, "succeeded": 0, "failed": 0, "duration_ms_total": 0.0, "errors": {}}
        )
        for event in events:
            stats = per_operation[event.operation]
            stats["total"] += 1
            stats["duration_ms_total"] += event.duration_ms
            if event.success:
                stats["succeeded"] += 1
            else:
                stats["failed"] += 1
            if event.error_code:
                stats["errors"][event.error_code] = stats["errors"].get(event.error_code, 0) + 1

        operations = {}
        for operation, stats in per_operation.items():
            total_duration = stats.pop("duration_ms_total")
            stats["avg_duration_ms"] = round(total_duration / stats["total"], 3)
            stats["success_rate"] = round(stats["succeeded"] / stats["total"], 4)
            operations[operation] = stats
        return {"event_count": len(events), "operations": operations}

    def start(self) -> None:
        """Start the periodic flush task on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info("Metrics flush task started", interval_seconds=self._flush_interval)

    async def stop(self) -> None:
        """Stop the periodic task, wait for in-flight flushes and flush whatever is left."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pending_flushes:
            await asyncio.gather(*self._pending_flushes)
        await self.flush()
        logger.info("Metrics flush task stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            await self.flush()
