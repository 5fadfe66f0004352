from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

# Settings and the engine are built at import time; point them at a throwaway DB first.
_DB_DIR = Path(tempfile.mkdtemp(prefix="routine-builder-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'routines.db'}"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["FEEDBACK_DELAY_SECONDS"] = "1.0"
os.environ["STRICT_CONFLICT_CHECKS"] = "false"

import pytest
from fastapi.testclient import TestClient

from core.bootstrap import bootstrap_schema
from core.database import ENGINE, SessionLocal
from core.security import create_access_token
from main import app
from models.base import Base
from models.routine import Routine
from models.subject import Subject, SubjectTeacher
from services.schedule_store import Assignment, ScheduleStore, session_store_factory
from services.timetable import Day
from services.workspace import workspaces


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(ENGINE)
    bootstrap_schema(ENGINE)
    yield
    workspaces.close_all()


@pytest.fixture
def store_factory():
    return session_store_factory(SessionLocal)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def _store():
    session = SessionLocal()
    try:
        yield ScheduleStore(session)
    finally:
        session.close()


def persisted(routine_id: str, day: Day, period: int) -> Assignment | None:
    """Read a cell through a brand-new session so no identity map can hide changes."""

    with _store() as store:
        return store.get_assignment(routine_id, day, period)


def put_cell(routine_id: str, day: Day, period: int, *, subject: str, teacher_id: str | None, teacher_name: str = "") -> None:
    with _store() as store:
        store.put_assignment(
            routine_id,
            day,
            period,
            Assignment(
                subject_code=subject,
                subject_name=store.subject_name(subject) or "",
                teacher_id=teacher_id,
                teacher_name=teacher_name,
            ),
        )


def delete_cell(routine_id: str, day: Day, period: int) -> None:
    with _store() as store:
        store.delete_assignment(routine_id, day, period)


def delete_routine(routine_id: str) -> None:
    with _store() as store:
        store.delete_routine(routine_id)


@pytest.fixture
def seeded():
    """Four routines, two subjects, three teachers; no cells filled."""

    session = SessionLocal()
    try:
        session.add_all(
            [
                Routine(id="IT1", name="IT First Year"),
                Routine(id="IT2", name="IT Second Year"),
                Routine(id="A"),
                Routine(id="B"),
                Subject(code="CS101", name="Programming"),
                Subject(code="MA101", name="Mathematics"),
            ]
        )
        session.flush()
        session.add_all(
            [
                SubjectTeacher(id="T7", subject_code="CS101", name="Dr. Rao"),
                SubjectTeacher(id="T1", subject_code="CS101", name="Ms. Sen"),
                SubjectTeacher(id="T2", subject_code="MA101", name="Mr. Das"),
            ]
        )
        session.commit()
    finally:
        session.close()
    return {"routines": ["IT1", "IT2", "A", "B"], "teachers": ["T7", "T1", "T2"]}


@pytest.fixture
def admin_token() -> str:
    return create_access_token(subject="admin-1", role="ADMIN")


@pytest.fixture
def client(admin_token):
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {admin_token}"})
        yield c


@pytest.fixture
def anon_client():
    with TestClient(app) as c:
        yield c
