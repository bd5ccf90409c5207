from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from doclens.app.events.models import PipelineEvent, TERMINAL_EVENT_TYPES
from doclens.app.events.emitter import PipelineEventEmitter

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(PipelineEventEmitter):
    """
    In-memory async event emitter used for SSE streaming.

    Single consumer, ordered. The stream ends after the first terminal
    event (run completed or failed) or an explicit close(). With
    close_on_terminal=False only close() ends it, so a caller can append
    a REPORT_READY event after the run finished.
    """

    def __init__(self, *, close_on_terminal: bool = True) -> None:
        self._queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()
        self._closed = False
        self._close_on_terminal = close_on_terminal

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: PipelineEvent) -> None:
        if self._closed:
            return

        try:
            await self._queue.put(event)
        except Exception:
            # Observability must never break the run
            logger.warning(
                "Dropped event %s for run %s",
                event.event_type.value,
                event.run_id,
                exc_info=True,
            )
            return

        if self._close_on_terminal and event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[PipelineEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
