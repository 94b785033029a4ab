from .models import RepairEvent, RepairEventType
from .emitter import RepairEventEmitter, NullEventEmitter
from .memory_emitter import MemoryEventEmitter

__all__ = [
    "RepairEvent",
    "RepairEventType",
    "RepairEventEmitter",
    "NullEventEmitter",
    "MemoryEventEmitter",
]
