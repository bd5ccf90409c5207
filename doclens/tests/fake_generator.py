"""
Scripted generator for pipeline testing.

Replays a fixed list of replies without invoking any external service.

IMPORTANT:
- Deterministic
- CI-safe
- Each scripted entry is either a GenerationResponse, a plain string
  (wrapped with the default usage), or an exception to raise.
"""

from __future__ import annotations

from typing import List, Sequence, Union

from doclens.app.generation.request import GenerationRequest, GenerationResponse
from doclens.app.schemas.usage import RawUsage


ScriptEntry = Union[GenerationResponse, str, BaseException]

DEFAULT_USAGE = RawUsage(input_tokens=100, output_tokens=50)


class ScriptedGenerator:
    def __init__(
        self,
        script: Sequence[ScriptEntry],
        *,
        usage: RawUsage = DEFAULT_USAGE,
    ) -> None:
        self._script = list(script)
        self._usage = usage

        # Observability for tests
        self.requests: List[GenerationRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)

        if not self._script:
            raise AssertionError(
                f"ScriptedGenerator exhausted at call {self.calls} "
                f"(stage {request.stage})"
            )

        entry = self._script.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, str):
            return GenerationResponse(text=entry, usage=self._usage)
        return entry


class ListEmitter:
    """Non-blocking emitter that keeps every event in order."""

    def __init__(self) -> None:
        self.events = []

    async def emit(self, event) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]
