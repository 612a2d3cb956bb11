"""Domain layer: processing pipeline, scroll synchronization and rescheduling."""

from agenda_lite.domain.engine import AgendaEngine, DropOutcome
from agenda_lite.domain.scroll_sync import ScrollSynchronizer, SyncPhase, SyncState

__all__ = [
    "AgendaEngine",
    "DropOutcome",
    "ScrollSynchronizer",
    "SyncPhase",
    "SyncState",
]
