from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

from models.routine import Routine, RoutinePeriod
from services.timetable import DAYS


logger = logging.getLogger(__name__)

_PENDING_KEY = "routine_period_changes"


@dataclass(frozen=True)
class RoutineDayChanged:
    routine_id: str
    day: str


Listener = Callable[[RoutineDayChanged], None]


class ChangeFeed:
    """Push notifications for committed changes to a routine's day collection.

    Delivery happens on the writer's thread, after its transaction commits.
    Rolled-back changes are never delivered.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[tuple[str, str], list[Listener]] = defaultdict(list)

    def subscribe(self, routine_id: str, day: str, listener: Listener) -> Callable[[], None]:
        key = (routine_id, day)
        with self._lock:
            self._listeners[key].append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                if key in self._listeners and not self._listeners[key]:
                    del self._listeners[key]

        return _unsubscribe

    def subscriber_count(self, routine_id: str, day: str) -> int:
        with self._lock:
            return len(self._listeners.get((routine_id, day), ()))

    def publish(self, change: RoutineDayChanged) -> None:
        with self._lock:
            listeners = list(self._listeners.get((change.routine_id, change.day), ()))
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Change listener failed routine_id=%s day=%s", change.routine_id, change.day)


CHANGE_FEED = ChangeFeed()


@event.listens_for(Session, "after_flush")
def _collect_routine_changes(session: Session, flush_context) -> None:
    # new/dirty/deleted still hold the pre-flush state here.
    pending: set[tuple[str, str]] = session.info.setdefault(_PENDING_KEY, set())
    for obj in (*session.new, *session.dirty, *session.deleted):
        if isinstance(obj, RoutinePeriod):
            pending.add((str(obj.routine_id), str(obj.day)))
    # A deleted routine touches every day, even when it had no cells.
    for obj in session.deleted:
        if isinstance(obj, Routine):
            pending.update((str(obj.id), day.value) for day in DAYS)


@event.listens_for(Session, "after_commit")
def _publish_routine_changes(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    for routine_id, day in sorted(pending or ()):
        CHANGE_FEED.publish(RoutineDayChanged(routine_id=routine_id, day=day))


@event.listens_for(Session, "after_rollback")
def _discard_routine_changes(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
