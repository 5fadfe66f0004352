from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RoutineCreate(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str | None = Field(default=None, max_length=200)


class RoutineUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class RoutineOut(BaseModel):
    id: str
    name: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentOut(BaseModel):
    subject_code: str
    subject_name: str
    teacher_id: str | None = None
    teacher_name: str
    room: str
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PeriodOut(BaseModel):
    period: int
    assignment: AssignmentOut


class GridCellOut(BaseModel):
    period: int
    label: str
    is_break: bool = False
    assignment: AssignmentOut | None = None


class GridDayOut(BaseModel):
    day: str
    display_name: str
    cells: list[GridCellOut]


class RoutineGridOut(BaseModel):
    routine_id: str
    routine_name: str
    days: list[GridDayOut]
