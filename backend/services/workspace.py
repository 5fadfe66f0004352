from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable

from core.changefeed import CHANGE_FEED, ChangeFeed, RoutineDayChanged
from core.config import settings
from core.database import SessionLocal
from services.assignment_index import AssignmentIndex
from services.edit_session import EditSession
from services.schedule_store import StoreFactory, session_store_factory
from services.timetable import DAYS, Day, teaching_periods


logger = logging.getLogger(__name__)


class RoutineNotFoundError(LookupError):
    pass


class RoutineWorkspace:
    """Page-level coordinator for several routines edited side by side.

    Owns the only AssignmentIndex for its routines; edit sessions update it
    through ``record_assignment`` and never keep a copy.
    """

    def __init__(
        self,
        workspace_id: str,
        *,
        store_factory: StoreFactory,
        feed: ChangeFeed = CHANGE_FEED,
        feedback_delay_seconds: float = 1.0,
        strict_conflict_checks: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = workspace_id
        self.index = AssignmentIndex()
        self._store_factory = store_factory
        self._feed = feed
        self._feedback_delay = feedback_delay_seconds
        self._strict = strict_conflict_checks
        self._clock = clock

        self._lock = threading.RLock()
        self._routines: list[str] = []
        self._sessions: dict[str, EditSession] = {}
        self._unsubscribers: dict[str, list[Callable[[], None]]] = {}

    @property
    def routine_ids(self) -> list[str]:
        with self._lock:
            return list(self._routines)

    def open_routine(self, routine_id: str) -> None:
        with self._store_factory() as store:
            if not store.routine_exists(routine_id):
                raise RoutineNotFoundError(routine_id)

        with self._lock:
            if routine_id in self._routines:
                return
            self._routines.append(routine_id)
            self._unsubscribers[routine_id] = [
                self._feed.subscribe(routine_id, day.value, self._on_routine_changed) for day in DAYS
            ]
        self.reload_routine(routine_id)
        logger.debug("Workspace %s opened routine %s", self.id, routine_id)

    def close_routine(self, routine_id: str) -> None:
        with self._lock:
            if routine_id not in self._routines:
                return
            self._routines.remove(routine_id)
            for unsubscribe in self._unsubscribers.pop(routine_id, []):
                unsubscribe()
            self._sessions.pop(routine_id, None)
            self.index.remove_routine(routine_id)
        logger.debug("Workspace %s closed routine %s", self.id, routine_id)

    def close(self) -> None:
        for routine_id in self.routine_ids:
            self.close_routine(routine_id)

    def reload_routine(self, routine_id: str) -> None:
        """Rebuild the routine's claims from persisted state."""

        teaching = {str(slot.period): slot.period for slot in teaching_periods()}
        claims: list[tuple[Day, int, str | None]] = []
        with self._store_factory() as store:
            for day in DAYS:
                for key, assignment in store.fetch_day(routine_id, day).items():
                    if key in teaching and assignment.teacher_id:
                        claims.append((day, teaching[key], assignment.teacher_id))

        with self._lock:
            if routine_id not in self._routines:
                return
            self.index.rebuild_routine(routine_id, claims)

    def _on_routine_changed(self, change: RoutineDayChanged) -> None:
        with self._store_factory() as store:
            exists = store.routine_exists(change.routine_id)
        if not exists:
            logger.info("Routine %s was deleted; closing it in workspace %s", change.routine_id, self.id)
            self.close_routine(change.routine_id)
            return
        # Committed cells are not re-checked here; staleness lasts until the next probe.
        self.reload_routine(change.routine_id)

    def record_assignment(
        self,
        routine_id: str,
        day: Day,
        period: int,
        teacher_id: str | None,
        previous_teacher_id: str | None,
    ) -> None:
        with self._lock:
            # The routine may have been closed while its write was in flight.
            if routine_id not in self._routines:
                return
            self.index.record_assignment(routine_id, day, period, teacher_id, previous_teacher_id)

    def is_available(self, routine_id: str, day: Day | str, period: int, teacher_id: str) -> bool:
        with self._lock:
            return self.index.is_available(routine_id, day, period, teacher_id)

    def conflicting_routine(self, routine_id: str, day: Day | str, period: int, teacher_id: str) -> str | None:
        with self._lock:
            return self.index.conflicting_routine(routine_id, day, period, teacher_id)

    def claims(self) -> dict[str, dict[str, list[str]]]:
        with self._lock:
            return self.index.snapshot()

    def edit_session(self, routine_id: str) -> EditSession:
        with self._lock:
            if routine_id not in self._routines:
                raise RoutineNotFoundError(routine_id)
            session = self._sessions.get(routine_id)
            if session is None:
                session = EditSession(
                    routine_id,
                    store_factory=self._store_factory,
                    record_assignment=self.record_assignment,
                    feedback_delay_seconds=self._feedback_delay,
                    strict_conflict_checks=self._strict,
                    clock=self._clock,
                )
                self._sessions[routine_id] = session
            return session


class WorkspaceRegistry:
    """In-process registry of open workspaces.

    Workspaces live in this worker's memory only; multi-worker deployments need
    sticky sessions for the workspace routes.
    """

    def __init__(self, factory: Callable[[str], RoutineWorkspace]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._workspaces: dict[str, RoutineWorkspace] = {}

    def create(self) -> RoutineWorkspace:
        workspace = self._factory(uuid.uuid4().hex)
        with self._lock:
            self._workspaces[workspace.id] = workspace
        return workspace

    def get(self, workspace_id: str) -> RoutineWorkspace | None:
        with self._lock:
            return self._workspaces.get(workspace_id)

    def close(self, workspace_id: str) -> bool:
        with self._lock:
            workspace = self._workspaces.pop(workspace_id, None)
        if workspace is None:
            return False
        workspace.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            open_workspaces = list(self._workspaces.values())
            self._workspaces.clear()
        for workspace in open_workspaces:
            workspace.close()


def _default_workspace(workspace_id: str) -> RoutineWorkspace:
    return RoutineWorkspace(
        workspace_id,
        store_factory=session_store_factory(SessionLocal),
        feedback_delay_seconds=settings.feedback_delay_seconds,
        strict_conflict_checks=settings.strict_conflict_checks,
    )


workspaces = WorkspaceRegistry(_default_workspace)
