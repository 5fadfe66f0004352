from __future__ import annotations

from pydantic import BaseModel, Field

from schemas.conflict import ProbeOut
from services.edit_session import Draft, EditOutcome


class WorkspaceOut(BaseModel):
    id: str
    routine_ids: list[str]


class OpenRoutineRequest(BaseModel):
    routine_id: str = Field(min_length=1)


class AvailabilityOut(BaseModel):
    available: bool
    conflicting_routine: str | None = None


class OpenCellRequest(BaseModel):
    day: str = Field(min_length=1)
    period: int


class DraftPatch(BaseModel):
    # Applied in field order: subject, then teacher, then room.
    subject_code: str | None = None
    teacher_id: str | None = None
    room: str | None = None


class DraftOut(BaseModel):
    subject_code: str
    subject_name: str
    teacher_id: str | None = None
    teacher_name: str
    room: str

    @classmethod
    def from_draft(cls, draft: Draft) -> "DraftOut":
        return cls(
            subject_code=draft.subject_code,
            subject_name=draft.subject_name,
            teacher_id=draft.teacher_id,
            teacher_name=draft.teacher_name,
            room=draft.room,
        )


class CellStateOut(BaseModel):
    routine_id: str
    state: str
    day: str | None = None
    period: int | None = None
    draft: DraftOut | None = None


class EditOutcomeOut(BaseModel):
    status: str
    state: str
    message: str = ""
    draft: DraftOut | None = None
    conflict: ProbeOut | None = None
    probe_status: str | None = None

    @classmethod
    def from_outcome(cls, outcome: EditOutcome) -> "EditOutcomeOut":
        return cls(
            status=outcome.status.value,
            state=outcome.state.value,
            message=outcome.message,
            draft=DraftOut.from_draft(outcome.draft) if outcome.draft is not None else None,
            conflict=ProbeOut.from_result(outcome.conflict) if outcome.conflict is not None else None,
            probe_status=outcome.probe_status.value if outcome.probe_status is not None else None,
        )
