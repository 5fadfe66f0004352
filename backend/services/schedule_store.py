from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, ContextManager, Iterator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.routine import Routine, RoutinePeriod
from models.subject import Subject, SubjectTeacher
from services.timetable import Day


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    """Content of one (routine, day, period) cell. No subject code means an empty cell."""

    subject_code: str = ""
    subject_name: str = ""
    teacher_id: str | None = None
    teacher_name: str = ""
    room: str = ""
    updated_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.subject_code

    @classmethod
    def from_row(cls, row: RoutinePeriod) -> "Assignment":
        return cls(
            subject_code=row.subject_code or "",
            subject_name=row.subject_name or "",
            teacher_id=row.teacher_id or None,
            teacher_name=row.teacher_name or "",
            room=row.room or "",
            updated_at=row.updated_at,
        )


class ScheduleStore:
    """Reads and writes period documents for routines.

    Every read is scoped the way the grid reads it: one routine, one day at a time.
    Writes commit immediately; on failure the session is rolled back and the
    SQLAlchemy error propagates.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_routine_ids(self) -> list[str]:
        return list(self.db.execute(select(Routine.id)).scalars().all())

    def routine_exists(self, routine_id: str) -> bool:
        return self.db.get(Routine, routine_id) is not None

    def routine_display_name(self, routine_id: str) -> str:
        name = self.db.execute(select(Routine.name).where(Routine.id == routine_id)).scalar_one_or_none()
        return name or routine_id

    def fetch_day(self, routine_id: str, day: Day) -> dict[str, Assignment]:
        rows = (
            self.db.execute(
                select(RoutinePeriod)
                .where(RoutinePeriod.routine_id == routine_id)
                .where(RoutinePeriod.day == day.value)
                .order_by(RoutinePeriod.period.asc())
            )
            .scalars()
            .all()
        )
        return {str(r.period): Assignment.from_row(r) for r in rows}

    def get_assignment(self, routine_id: str, day: Day, period: int) -> Assignment | None:
        row = self.db.get(RoutinePeriod, (routine_id, day.value, int(period)))
        return Assignment.from_row(row) if row is not None else None

    def put_assignment(self, routine_id: str, day: Day, period: int, assignment: Assignment) -> Assignment:
        if assignment.is_empty:
            raise ValueError("refusing to persist an assignment without a subject code")

        stamped = replace(assignment, updated_at=datetime.now(timezone.utc))
        row = self.db.get(RoutinePeriod, (routine_id, day.value, int(period)))
        if row is None:
            row = RoutinePeriod(routine_id=routine_id, day=day.value, period=int(period))
            self.db.add(row)

        row.subject_code = stamped.subject_code
        row.subject_name = stamped.subject_name
        row.teacher_id = stamped.teacher_id or None
        row.teacher_name = stamped.teacher_name
        row.room = stamped.room
        row.updated_at = stamped.updated_at
        self._commit()
        return stamped

    def delete_assignment(self, routine_id: str, day: Day, period: int) -> None:
        row = self.db.get(RoutinePeriod, (routine_id, day.value, int(period)))
        if row is None:
            return
        self.db.delete(row)
        self._commit()

    def delete_routine(self, routine_id: str) -> None:
        # Row-by-row (not a bulk DELETE) so the change feed sees every removed cell.
        rows = self.db.execute(select(RoutinePeriod).where(RoutinePeriod.routine_id == routine_id)).scalars().all()
        try:
            for row in rows:
                self.db.delete(row)
            self.db.flush()
            routine = self.db.get(Routine, routine_id)
            if routine is not None:
                self.db.delete(routine)
        except Exception:
            self.db.rollback()
            raise
        self._commit()

    def subject_name(self, subject_code: str) -> str | None:
        subject = self.db.get(Subject, subject_code)
        return subject.name if subject is not None else None

    def teacher_name(self, subject_code: str, teacher_id: str) -> str | None:
        q = (
            select(SubjectTeacher.name)
            .where(SubjectTeacher.subject_code == subject_code)
            .where(SubjectTeacher.id == teacher_id)
        )
        return self.db.execute(q).scalar_one_or_none()

    def recover(self) -> None:
        """Put the session back into a usable state after a failed read."""

        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.debug("Rollback after failed read also failed", exc_info=True)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise


StoreFactory = Callable[[], ContextManager[ScheduleStore]]


def session_store_factory(session_factory: Callable[[], Session]) -> StoreFactory:
    """Build a factory that opens a short-lived session per unit of work.

    Workspaces outlive requests, so they cannot hold on to a request's session.
    """

    @contextmanager
    def _open() -> Iterator[ScheduleStore]:
        db = session_factory()
        try:
            yield ScheduleStore(db)
        finally:
            db.close()

    return _open
