from .models import PipelineEvent, PipelineEventType, TERMINAL_EVENT_TYPES
from .emitter import PipelineEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "PipelineEvent",
    "PipelineEventType",
    "TERMINAL_EVENT_TYPES",
    "PipelineEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
