from __future__ import annotations

from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from conftest import FakeClock, persisted, put_cell
from core.database import SessionLocal
from services.assignment_index import AssignmentIndex
from services.conflict_prober import ProbeStatus
from services.edit_session import EditSession, EditSessionError, EditState, OutcomeStatus
from services.schedule_store import ScheduleStore
from services.timetable import Day, ScheduleValidationError


def _factory_for(store_cls, **kwargs):
    @contextmanager
    def _open():
        db = SessionLocal()
        try:
            yield store_cls(db, **kwargs)
        finally:
            db.close()

    return _open


class _FailingWrites(ScheduleStore):
    def put_assignment(self, *args, **kwargs):
        raise SQLAlchemyError("disk I/O error")


class _UnreadableDays(ScheduleStore):
    def fetch_day(self, routine_id, day):
        raise OperationalError("SELECT", {}, Exception("timeout"))


class _InterruptingReads(ScheduleStore):
    """Runs a hook during the first day read, as if the user acted mid-probe."""

    def __init__(self, db, hook):
        super().__init__(db)
        self._hook = hook

    def fetch_day(self, routine_id, day):
        hook, self._hook = self._hook, None
        if hook is not None:
            hook()
        return super().fetch_day(routine_id, day)


@pytest.fixture
def index():
    return AssignmentIndex()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_session(store_factory, index, clock):
    def _make(routine_id, *, factory=None, strict=False):
        return EditSession(
            routine_id,
            store_factory=factory or store_factory,
            record_assignment=index.record_assignment,
            feedback_delay_seconds=1.0,
            strict_conflict_checks=strict,
            clock=clock,
        )

    return _make


def _fill(session, day, period, subject, teacher_id):
    session.open(day, period)
    session.select_subject(subject)
    outcome = session.select_teacher(teacher_id)
    assert outcome.status is OutcomeStatus.OK
    return session.commit()


def test_clash_is_rejected_until_the_other_routine_frees_the_slot(seeded, make_session, index, clock):
    it1 = make_session("IT1")
    it2 = make_session("IT2")

    outcome = _fill(it1, Day.MON, 2, "CS101", "T7")
    assert outcome.status is OutcomeStatus.OK
    assert outcome.message == "Saved successfully!"
    assert persisted("IT1", Day.MON, 2).teacher_id == "T7"

    it2.open("mon", 2)
    it2.select_subject("CS101")
    rejected = it2.select_teacher("T7")

    assert rejected.status is OutcomeStatus.REJECTED
    assert rejected.state is EditState.REJECTED
    assert rejected.message == "Cannot assign Dr. Rao. Already scheduled in IT First Year."
    assert rejected.conflict.routine_id == "IT1"
    assert rejected.draft.subject_code == "CS101"
    assert rejected.draft.teacher_id is None
    assert it2.state is EditState.EDITING

    clock.advance(1.0)
    it1.open(Day.MON, 2)
    it1.select_subject("")
    cleared = it1.commit()
    assert cleared.message == "Cell cleared successfully!"
    assert persisted("IT1", Day.MON, 2) is None
    assert "T7" not in index

    accepted = it2.select_teacher("T7")
    assert accepted.status is OutcomeStatus.OK
    assert accepted.probe_status is ProbeStatus.CLEAR
    assert it2.commit().status is OutcomeStatus.OK

    saved = persisted("IT2", Day.MON, 2)
    assert saved.teacher_id == "T7"
    assert saved.teacher_name == "Dr. Rao"
    assert saved.subject_name == "Programming"
    assert index.snapshot() == {"T7": {"mon-2": ["IT2"]}}


def test_recommitting_own_assignment_is_not_a_conflict(seeded, make_session, index, clock):
    session = make_session("A")
    assert _fill(session, Day.TUE, 5, "CS101", "T1").status is OutcomeStatus.OK

    clock.advance(5)
    session.open(Day.TUE, 5)
    assert session.draft.teacher_id == "T1"
    assert session.select_teacher("T1").status is OutcomeStatus.OK
    assert session.commit().status is OutcomeStatus.OK

    assert index.is_available("A", Day.TUE, 5, "T1")
    assert index.snapshot() == {"T1": {"tue-5": ["A"]}}


def test_changing_teacher_moves_the_claim(seeded, make_session, index, clock):
    session = make_session("A")
    _fill(session, Day.WED, 1, "CS101", "T1")
    clock.advance(5)

    _fill(session, Day.WED, 1, "CS101", "T7")

    assert index.snapshot() == {"T7": {"wed-1": ["A"]}}
    assert persisted("A", Day.WED, 1).teacher_id == "T7"


def test_commit_rechecks_and_keeps_the_draft(seeded, make_session):
    it2 = make_session("IT2")
    it2.open(Day.MON, 2)
    it2.select_subject("CS101")
    assert it2.select_teacher("T7").status is OutcomeStatus.OK

    # Someone else books T7 after the teacher was picked.
    put_cell("IT1", Day.MON, 2, subject="CS101", teacher_id="T7", teacher_name="Dr. Rao")

    outcome = it2.commit()

    assert outcome.status is OutcomeStatus.REJECTED
    assert outcome.message == "Cannot save. Dr. Rao is already scheduled in IT First Year."
    assert outcome.draft.teacher_id == "T7"
    assert it2.state is EditState.EDITING
    assert persisted("IT2", Day.MON, 2) is None


def test_subject_only_cell_is_saved_without_teacher(seeded, make_session, index):
    session = make_session("B")
    session.open(Day.THU, 3)
    session.select_subject("MA101")
    session.set_room("  R-101 ")

    assert session.commit().status is OutcomeStatus.OK

    saved = persisted("B", Day.THU, 3)
    assert saved.subject_name == "Mathematics"
    assert saved.teacher_id is None
    assert saved.room == "R-101"
    assert len(index) == 0


def test_changing_subject_drops_the_teacher(seeded, make_session):
    session = make_session("A")
    session.open(Day.MON, 1)
    session.select_subject("CS101")
    session.select_teacher("T7")

    outcome = session.select_subject("MA101")

    assert outcome.draft.subject_name == "Mathematics"
    assert outcome.draft.teacher_id is None


def test_clear_removes_record_and_claim(seeded, make_session, index, clock):
    session = make_session("A")
    _fill(session, Day.FRI, 8, "CS101", "T1")
    clock.advance(5)

    session.open(Day.FRI, 8)
    outcome = session.clear()

    assert outcome.message == "Cell cleared!"
    assert outcome.state is EditState.COMMITTED
    assert persisted("A", Day.FRI, 8) is None
    assert "T1" not in index


def test_committed_reads_as_idle_after_feedback_delay(seeded, make_session, clock):
    session = make_session("A")
    _fill(session, Day.MON, 1, "CS101", "T1")

    assert session.state is EditState.COMMITTED
    clock.advance(0.5)
    assert session.state is EditState.COMMITTED
    clock.advance(0.5)
    assert session.state is EditState.IDLE
    assert session.cell is None
    assert session.draft is None


def test_cancel_discards_the_draft(seeded, make_session):
    session = make_session("A")
    session.open(Day.MON, 1)
    session.select_subject("CS101")

    outcome = session.cancel()

    assert outcome.state is EditState.IDLE
    assert session.cell is None
    assert persisted("A", Day.MON, 1) is None


def test_teacher_check_for_a_cancelled_cell_is_dropped(seeded, make_session):
    put_cell("IT1", Day.MON, 2, subject="CS101", teacher_id="T7")
    holder = {}
    session = make_session(
        "IT2",
        factory=_factory_for(_InterruptingReads, hook=lambda: holder["session"].cancel()),
    )
    holder["session"] = session
    session.open(Day.MON, 2)
    session.select_subject("CS101")

    outcome = session.select_teacher("T7")

    assert outcome.status is OutcomeStatus.STALE
    assert session.state is EditState.IDLE
    assert session.draft is None


def test_write_failure_keeps_editing(seeded, make_session, index):
    session = make_session("A", factory=_factory_for(_FailingWrites))
    session.open(Day.MON, 1)
    session.select_subject("CS101")
    session.select_teacher("T1")

    outcome = session.commit()

    assert outcome.status is OutcomeStatus.FAILED
    assert "disk I/O error" in outcome.message
    assert session.state is EditState.EDITING
    assert session.draft.teacher_id == "T1"
    assert len(index) == 0


def test_unverifiable_teacher_is_allowed_by_default(seeded, make_session):
    session = make_session("A", factory=_factory_for(_UnreadableDays))
    session.open(Day.MON, 1)
    session.select_subject("CS101")

    picked = session.select_teacher("T1")
    assert picked.status is OutcomeStatus.OK
    assert picked.probe_status is ProbeStatus.UNKNOWN
    assert picked.message

    committed = session.commit()
    assert committed.status is OutcomeStatus.OK
    assert committed.probe_status is ProbeStatus.UNKNOWN
    assert persisted("A", Day.MON, 1).teacher_id == "T1"


def test_strict_mode_blocks_unverifiable_commit(seeded, make_session):
    session = make_session("A", factory=_factory_for(_UnreadableDays), strict=True)
    session.open(Day.MON, 1)
    session.select_subject("CS101")
    session.select_teacher("T1")

    outcome = session.commit()

    assert outcome.status is OutcomeStatus.REJECTED
    assert outcome.probe_status is ProbeStatus.UNKNOWN
    assert outcome.conflict is None
    assert persisted("A", Day.MON, 1) is None


def test_actions_without_an_open_cell_raise(seeded, make_session):
    session = make_session("A")

    with pytest.raises(EditSessionError) as exc:
        session.commit()
    assert exc.value.code == "NO_ACTIVE_CELL"

    with pytest.raises(EditSessionError):
        session.select_subject("CS101")


@pytest.mark.parametrize(
    "subject,teacher,code",
    [
        ("", "T7", "SUBJECT_REQUIRED"),
        ("MA101", "T7", "TEACHER_NOT_FOUND"),
    ],
)
def test_teacher_must_belong_to_the_subject(seeded, make_session, subject, teacher, code):
    session = make_session("A")
    session.open(Day.MON, 1)
    session.select_subject(subject)

    with pytest.raises(ScheduleValidationError) as exc:
        session.select_teacher(teacher)
    assert exc.value.code == code


def test_unknown_subject_is_rejected(seeded, make_session):
    session = make_session("A")
    session.open(Day.MON, 1)

    with pytest.raises(ScheduleValidationError) as exc:
        session.select_subject("ZZ999")
    assert exc.value.code == "SUBJECT_NOT_FOUND"


def test_break_period_cannot_be_opened(seeded, make_session):
    with pytest.raises(ScheduleValidationError) as exc:
        make_session("A").open(Day.MON, 4)
    assert exc.value.code == "BREAK_PERIOD"


class _UnreadableTeachers(ScheduleStore):
    def teacher_name(self, subject_code, teacher_id):
        raise OperationalError("SELECT", {}, Exception("syntax error"))


class _HookedWrites(ScheduleStore):
    def __init__(self, db, hook):
        super().__init__(db)
        self._hook = hook

    def put_assignment(self, *args, **kwargs):
        self._hook()
        return super().put_assignment(*args, **kwargs)


def test_failed_teacher_lookup_keeps_editing(seeded, make_session, index):
    session = make_session("A", factory=_factory_for(_UnreadableTeachers))
    session.open(Day.MON, 1)
    session.select_subject("CS101")

    outcome = session.select_teacher("T1")

    assert outcome.status is OutcomeStatus.FAILED
    assert "syntax error" in outcome.message
    assert session.state is EditState.EDITING
    assert session.draft.subject_code == "CS101"
    assert session.draft.teacher_id is None
    assert len(index) == 0


def test_second_save_during_a_write_is_refused(seeded, make_session):
    refused = []

    def _save_again():
        with pytest.raises(EditSessionError) as exc:
            holder["session"].commit()
        refused.append(exc.value.code)

    holder = {}
    session = make_session("A", factory=_factory_for(_HookedWrites, hook=_save_again))
    holder["session"] = session
    session.open(Day.MON, 1)
    session.select_subject("MA101")

    assert session.commit().status is OutcomeStatus.OK
    assert refused == ["EDIT_IN_PROGRESS"]
    assert persisted("A", Day.MON, 1).subject_name == "Mathematics"


def test_failed_subject_lookup_keeps_the_draft(seeded, make_session, monkeypatch):
    session = make_session("A")
    session.open(Day.MON, 1)
    session.select_subject("CS101")

    def _broken(self, subject_code):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(ScheduleStore, "subject_name", _broken)
    outcome = session.select_subject("MA101")

    assert outcome.status is OutcomeStatus.FAILED
    assert session.state is EditState.EDITING
    assert session.draft.subject_code == "CS101"
