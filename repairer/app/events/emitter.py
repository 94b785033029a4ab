from __future__ import annotations

from typing import Protocol

from repairer.app.events.models import RepairEvent


class RepairEventEmitter(Protocol):
    """
    Receives the events of a repair request as the orchestrator moves
    between states.

    ``emit`` is called inline on the repair path, so it should return
    quickly. Nothing it does can change the repair: an emitter that
    raises is logged and ignored.
    """

    def emit(self, event: RepairEvent) -> None:
        ...


class NullEventEmitter:
    """
    Drops every event. The orchestrator default when no emitter is given.
    """

    def emit(self, event: RepairEvent) -> None:
        return
