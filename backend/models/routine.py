from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.sql import func

from models.base import Base


class Routine(Base):
    __tablename__ = "routines"

    # Opaque, caller-chosen identifier (e.g. "IT1"); never contains "/".
    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("length(id) > 0", name="ck_routines_id_not_empty"),
    )


class RoutinePeriod(Base):
    """One filled cell of a routine grid. Empty cells have no row."""

    __tablename__ = "routine_periods"

    routine_id = Column(Text, ForeignKey("routines.id", ondelete="CASCADE"), nullable=False)
    day = Column(Text, nullable=False)
    period = Column(Integer, nullable=False)

    subject_code = Column(Text, nullable=False)
    subject_name = Column(Text, nullable=False, default="")
    teacher_id = Column(Text, nullable=True, index=True)
    teacher_name = Column(Text, nullable=False, default="")
    room = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("routine_id", "day", "period", name="pk_routine_periods"),
        CheckConstraint("day in ('mon', 'tue', 'wed', 'thu', 'fri')", name="ck_routine_periods_day"),
        CheckConstraint("period >= 1", name="ck_routine_periods_period"),
        CheckConstraint("length(subject_code) > 0", name="ck_routine_periods_subject_code"),
    )
