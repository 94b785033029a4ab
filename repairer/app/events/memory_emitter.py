from __future__ import annotations

from typing import List

from repairer.app.events.models import RepairEvent, RepairEventType
from repairer.app.events.emitter import RepairEventEmitter


class MemoryEventEmitter(RepairEventEmitter):
    """
    Collects emitted events in order.

    Suitable for an audit logger that reads the whole sequence after the
    repair returns. Events arriving after REPAIR_COMPLETED are dropped.
    """

    def __init__(self) -> None:
        self._events: List[RepairEvent] = []
        self._closed = False

    def emit(self, event: RepairEvent) -> None:
        if self._closed:
            return

        self._events.append(event)

        if event.event_type is RepairEventType.REPAIR_COMPLETED:
            self._closed = True

    @property
    def events(self) -> List[RepairEvent]:
        return list(self._events)

    @property
    def closed(self) -> bool:
        return self._closed

    def event_types(self) -> List[RepairEventType]:
        return [event.event_type for event in self._events]
