from __future__ import annotations

from typing import Protocol

from doclens.app.events.models import PipelineEvent


class PipelineEventEmitter(Protocol):
    """
    Interface for broadcasting pipeline observations.

    Implementations must never let an emission failure break a run.
    """

    async def emit(self, event: PipelineEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used by synchronous endpoints and by tests that do not care about
    events.
    """

    async def emit(self, event: PipelineEvent) -> None:
        return
