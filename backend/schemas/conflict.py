from __future__ import annotations

from pydantic import BaseModel

from services.conflict_prober import ProbeResult


class ProbeOut(BaseModel):
    status: str
    routine_id: str | None = None
    routine_name: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: ProbeResult) -> "ProbeOut":
        return cls(
            status=result.status.value,
            routine_id=result.routine_id,
            routine_name=result.routine_name,
            error=result.error,
        )
