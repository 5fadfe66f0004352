from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from services.conflict_prober import ConflictProber, ProbeResult, ProbeStatus
from services.schedule_store import Assignment, StoreFactory
from services.timetable import Day, ScheduleValidationError, require_teaching_period


logger = logging.getLogger(__name__)


RecordAssignment = Callable[[str, Day, int, str | None, str | None], None]


class EditState(str, Enum):
    IDLE = "IDLE"
    EDITING = "EDITING"
    VALIDATING = "VALIDATING"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"


class OutcomeStatus(str, Enum):
    OK = "OK"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
    # The cell was cancelled or reopened while a probe was in flight.
    STALE = "STALE"


class EditSessionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class Draft:
    subject_code: str = ""
    subject_name: str = ""
    teacher_id: str | None = None
    teacher_name: str = ""
    room: str = ""

    @classmethod
    def from_assignment(cls, assignment: Assignment | None) -> "Draft":
        if assignment is None:
            return cls()
        return cls(
            subject_code=assignment.subject_code,
            subject_name=assignment.subject_name,
            teacher_id=assignment.teacher_id,
            teacher_name=assignment.teacher_name,
            room=assignment.room,
        )

    def to_assignment(self) -> Assignment:
        return Assignment(
            subject_code=self.subject_code,
            subject_name=self.subject_name,
            teacher_id=self.teacher_id or None,
            teacher_name=self.teacher_name if self.teacher_id else "",
            room=self.room,
        )


@dataclass(frozen=True)
class EditOutcome:
    status: OutcomeStatus
    state: EditState
    message: str = ""
    draft: Draft | None = None
    conflict: ProbeResult | None = None
    probe_status: ProbeStatus | None = None


class EditSession:
    """Cell editor for one routine: at most one cell is open at a time.

    The draft is local until ``commit``. Teacher selection and commit each probe
    persisted routines for a clash; there is no lock between the second probe
    and the write, so a concurrent writer elsewhere can still slip in.

    Probes and writes run outside the session lock. A result is only applied if
    the cell is still the one that was open when the probe started.
    """

    def __init__(
        self,
        routine_id: str,
        *,
        store_factory: StoreFactory,
        record_assignment: RecordAssignment,
        feedback_delay_seconds: float = 1.0,
        strict_conflict_checks: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.routine_id = routine_id
        self._store_factory = store_factory
        self._record_assignment = record_assignment
        self._feedback_delay = feedback_delay_seconds
        self._strict = strict_conflict_checks
        self._clock = clock

        self._lock = threading.RLock()
        self._state = EditState.IDLE
        self._cell: tuple[Day, int] | None = None
        self._draft: Draft | None = None
        self._token = 0
        self._committed_at: float | None = None

    # -- introspection -----------------------------------------------------

    @property
    def state(self) -> EditState:
        with self._lock:
            self._settle()
            return self._state

    @property
    def cell(self) -> tuple[Day, int] | None:
        with self._lock:
            self._settle()
            return self._cell

    @property
    def draft(self) -> Draft | None:
        with self._lock:
            self._settle()
            return replace(self._draft) if self._draft is not None else None

    def _settle(self) -> None:
        # COMMITTED is transient feedback; it reads as IDLE once the delay has passed.
        if self._state is EditState.COMMITTED and self._committed_at is not None:
            if self._clock() - self._committed_at >= self._feedback_delay:
                self._reset()

    def _reset(self) -> None:
        self._state = EditState.IDLE
        self._cell = None
        self._draft = None
        self._committed_at = None

    def _outcome(
        self,
        status: OutcomeStatus,
        message: str = "",
        *,
        state: EditState | None = None,
        **kwargs,
    ) -> EditOutcome:
        draft = replace(self._draft) if self._draft is not None else None
        return EditOutcome(status=status, state=state or self._state, message=message, draft=draft, **kwargs)

    def _require_editing(self, *, begin_save: bool = False) -> tuple[int, tuple[Day, int], Draft]:
        with self._lock:
            self._settle()
            if self._state is EditState.VALIDATING:
                raise EditSessionError("EDIT_IN_PROGRESS", "A save is already in progress for this routine.")
            if self._state is not EditState.EDITING or self._cell is None or self._draft is None:
                raise EditSessionError("NO_ACTIVE_CELL", "No cell is open for editing.")
            if begin_save:
                # Checked and claimed under one lock: a second save sees EDIT_IN_PROGRESS.
                self._state = EditState.VALIDATING
            return self._token, self._cell, replace(self._draft)

    def _is_current(self, token: int) -> bool:
        return token == self._token and self._state in (EditState.EDITING, EditState.VALIDATING)

    # -- transitions -------------------------------------------------------

    def open(self, day: Day | str, period: int) -> EditOutcome:
        day = Day.parse(day)
        period = require_teaching_period(period)
        with self._lock:
            self._settle()
            if self._state is EditState.VALIDATING:
                raise EditSessionError("EDIT_IN_PROGRESS", "A save is already in progress for this routine.")
            self._token += 1
            token = self._token

        with self._store_factory() as store:
            existing = store.get_assignment(self.routine_id, day, period)

        with self._lock:
            if token != self._token:
                return self._outcome(OutcomeStatus.STALE, "Another cell was opened meanwhile.")
            self._state = EditState.EDITING
            self._cell = (day, period)
            self._draft = Draft.from_assignment(existing)
            self._committed_at = None
            return self._outcome(OutcomeStatus.OK)

    def select_subject(self, subject_code: str | None) -> EditOutcome:
        token, _cell, _draft = self._require_editing()
        code = (subject_code or "").strip()
        name = ""
        if code:
            with self._store_factory() as store:
                try:
                    found = store.subject_name(code)
                except SQLAlchemyError as exc:
                    logger.warning("Subject lookup failed routine_id=%s subject=%s", self.routine_id, code, exc_info=exc)
                    store.recover()
                    with self._lock:
                        return self._outcome(OutcomeStatus.FAILED, f"Could not look up subject: {exc}")
            if found is None:
                raise ScheduleValidationError("SUBJECT_NOT_FOUND", f"Subject {code!r} does not exist.", field="subject_code")
            name = found

        with self._lock:
            if not self._is_current(token):
                return self._outcome(OutcomeStatus.STALE, "The cell is no longer being edited.")
            # A new subject invalidates the teacher choice.
            self._draft = replace(self._draft, subject_code=code, subject_name=name, teacher_id=None, teacher_name="")
            return self._outcome(OutcomeStatus.OK)

    def select_teacher(self, teacher_id: str | None) -> EditOutcome:
        token, (day, period), draft = self._require_editing()
        teacher_id = (teacher_id or "").strip()

        if not teacher_id:
            with self._lock:
                if not self._is_current(token):
                    return self._outcome(OutcomeStatus.STALE, "The cell is no longer being edited.")
                self._draft = replace(self._draft, teacher_id=None, teacher_name="")
                return self._outcome(OutcomeStatus.OK)

        if not draft.subject_code:
            raise ScheduleValidationError("SUBJECT_REQUIRED", "Pick a subject before a teacher.", field="teacher_id")

        with self._store_factory() as store:
            try:
                teacher_name = store.teacher_name(draft.subject_code, teacher_id)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Teacher lookup failed routine_id=%s subject=%s teacher_id=%s",
                    self.routine_id,
                    draft.subject_code,
                    teacher_id,
                    exc_info=exc,
                )
                store.recover()
                with self._lock:
                    return self._outcome(OutcomeStatus.FAILED, f"Could not look up teacher: {exc}")
            if teacher_name is None:
                raise ScheduleValidationError(
                    "TEACHER_NOT_FOUND",
                    f"Teacher {teacher_id!r} does not teach {draft.subject_code!r}.",
                    field="teacher_id",
                )
            probe = ConflictProber(store).find_conflict(teacher_id, day, period, self.routine_id)

        with self._lock:
            if not self._is_current(token):
                logger.debug("Dropping probe result for closed cell routine_id=%s", self.routine_id)
                return self._outcome(OutcomeStatus.STALE, "The cell is no longer being edited.", conflict=probe)

            if probe.is_conflict:
                # Rejected -> back to Editing, minus the clashing teacher.
                self._draft = replace(self._draft, teacher_id=None, teacher_name="")
                message = f"Cannot assign {teacher_name}. Already scheduled in {probe.routine_name}."
                return self._outcome(
                    OutcomeStatus.REJECTED,
                    message,
                    state=EditState.REJECTED,
                    conflict=probe,
                    probe_status=probe.status,
                )

            self._draft = replace(self._draft, teacher_id=teacher_id, teacher_name=teacher_name)
            message = ""
            if probe.status is ProbeStatus.UNKNOWN:
                message = "Could not verify teacher availability; other routines may already use this slot."
            return self._outcome(OutcomeStatus.OK, message, probe_status=probe.status)

    def set_room(self, room: str | None) -> EditOutcome:
        token, _cell, _draft = self._require_editing()
        with self._lock:
            if not self._is_current(token):
                return self._outcome(OutcomeStatus.STALE, "The cell is no longer being edited.")
            self._draft = replace(self._draft, room=(room or "").strip())
            return self._outcome(OutcomeStatus.OK)

    def commit(self) -> EditOutcome:
        _token, (day, period), draft = self._require_editing(begin_save=True)

        probe: ProbeResult | None = None
        if draft.subject_code and draft.teacher_id:
            # Re-check: a clash may have been written since the teacher was picked.
            with self._store_factory() as store:
                probe = ConflictProber(store).find_conflict(draft.teacher_id, day, period, self.routine_id)
            blocked = probe.is_conflict or (self._strict and probe.status is ProbeStatus.UNKNOWN)
            if blocked:
                with self._lock:
                    # The draft is kept as-is; only the teacher has to change.
                    self._state = EditState.EDITING
                    if probe.is_conflict:
                        message = f"Cannot save. {draft.teacher_name} is already scheduled in {probe.routine_name}."
                    else:
                        message = "Cannot save. Teacher availability could not be verified."
                    return self._outcome(
                        OutcomeStatus.REJECTED,
                        message,
                        state=EditState.REJECTED,
                        conflict=probe if probe.is_conflict else None,
                        probe_status=probe.status,
                    )

        try:
            with self._store_factory() as store:
                previous = store.get_assignment(self.routine_id, day, period)
                if not draft.subject_code:
                    # No subject means no cell: never persist an empty record.
                    store.delete_assignment(self.routine_id, day, period)
                    new_teacher_id = None
                    message = "Cell cleared successfully!"
                else:
                    store.put_assignment(self.routine_id, day, period, draft.to_assignment())
                    new_teacher_id = draft.teacher_id or None
                    message = "Saved successfully!"
        except SQLAlchemyError as exc:
            logger.error(
                "Saving cell failed routine_id=%s day=%s period=%s",
                self.routine_id,
                day.value,
                period,
                exc_info=exc,
            )
            with self._lock:
                self._state = EditState.EDITING
                return self._outcome(OutcomeStatus.FAILED, f"Failed to save: {exc}")

        previous_teacher_id = previous.teacher_id if previous is not None else None
        self._record_assignment(self.routine_id, day, period, new_teacher_id, previous_teacher_id)
        logger.info(
            "Cell committed routine_id=%s day=%s period=%s teacher_id=%s previous_teacher_id=%s",
            self.routine_id,
            day.value,
            period,
            new_teacher_id,
            previous_teacher_id,
        )

        with self._lock:
            self._state = EditState.COMMITTED
            self._committed_at = self._clock()
            probe_status = probe.status if probe is not None else None
            return self._outcome(OutcomeStatus.OK, message, probe_status=probe_status)

    def clear(self) -> EditOutcome:
        _token, (day, period), _draft = self._require_editing(begin_save=True)

        try:
            with self._store_factory() as store:
                previous = store.get_assignment(self.routine_id, day, period)
                store.delete_assignment(self.routine_id, day, period)
        except SQLAlchemyError as exc:
            logger.error(
                "Clearing cell failed routine_id=%s day=%s period=%s",
                self.routine_id,
                day.value,
                period,
                exc_info=exc,
            )
            with self._lock:
                self._state = EditState.EDITING
                return self._outcome(OutcomeStatus.FAILED, f"Failed to clear: {exc}")

        previous_teacher_id = previous.teacher_id if previous is not None else None
        self._record_assignment(self.routine_id, day, period, None, previous_teacher_id)
        logger.info("Cell cleared routine_id=%s day=%s period=%s", self.routine_id, day.value, period)

        with self._lock:
            self._state = EditState.COMMITTED
            self._committed_at = self._clock()
            self._draft = Draft()
            return self._outcome(OutcomeStatus.OK, "Cell cleared!")

    def cancel(self) -> EditOutcome:
        with self._lock:
            if self._state is EditState.VALIDATING:
                raise EditSessionError("EDIT_IN_PROGRESS", "A save is already in progress for this routine.")
            self._token += 1
            self._reset()
            return self._outcome(OutcomeStatus.OK)
