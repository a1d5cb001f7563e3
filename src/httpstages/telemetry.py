import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 1.0


class TelemetrySink(Protocol):
    async def session_started(self, session_id: str, test_count: int) -> None: ...

    async def test_completed(self, session_id: str, outcome: Any) -> None: ...

    async def session_completed(self, session_id: str, report: Any) -> None: ...


class TelemetryDispatcher:
    """Fire-and-forget delivery to an optional sink.

    Events are scheduled as background tasks so a slow sink never holds up
    the run, and sink failures are logged and dropped.
    """

    def __init__(self, sink: TelemetrySink | None, session_id: str):
        self.sink = sink
        self.session_id = session_id
        self._pending: set[asyncio.Task] = set()

    def emit(self, event: str, *args: Any) -> None:
        if self.sink is None:
            return
        handler = getattr(self.sink, event, None)
        if handler is None:
            return
        try:
            task = asyncio.ensure_future(handler(self.session_id, *args))
        except Exception as e:
            logger.debug(f"telemetry {event} failed: {e}")
            return
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"telemetry delivery failed: {task.exception()}")

    async def drain(self, timeout: float = DRAIN_TIMEOUT) -> None:
        """Give in-flight events a bounded grace period, then drop them."""
        if not self._pending:
            return
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in still_pending:
            task.cancel()
