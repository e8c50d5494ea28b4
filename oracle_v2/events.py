"""
Notifications emitted by the pipeline.

Notifications are buffered while a call runs and only dispatched once its
state has been committed, so subscribers never observe a rejected batch.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

COMMITTEE_KEY_ADDED = "committee_key_added"
COMMITTEE_KEY_REMOVED = "committee_key_removed"
PRICE_UPDATED = "price_updated"
ROOT_ACCEPTED = "root_accepted"
HCC_STATE_CHANGED = "hcc_state_changed"


@dataclass(frozen=True)
class Notification:
    kind: str
    data: dict = field(default_factory=dict)


class EventBus:
    def __init__(self):
        self._subscribers: list[Callable[[Notification], None]] = []
        self._pending: list[Notification] = []

    def subscribe(self, callback: Callable[[Notification], None]):
        self._subscribers.append(callback)

    def emit(self, kind: str, **data):
        self._pending.append(Notification(kind, data))

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)

    def discard(self):
        self._pending.clear()

    def take(self) -> list[Notification]:
        """Remove and return the buffered notifications."""
        taken, self._pending = self._pending, []
        return taken

    def publish(self, notes: list[Notification]) -> list[Notification]:
        """Deliver notifications to every subscriber in emission order."""
        for note in notes:
            logger.info(f"{note.kind}: {note.data}")
            for callback in self._subscribers:
                try:
                    callback(note)
                except Exception as e:
                    logger.error(f"Subscriber failed on {note.kind}: {e}")
        return notes
