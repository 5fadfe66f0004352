from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from api.deps import get_store, require_admin
from schemas.conflict import ProbeOut
from services.conflict_prober import ConflictProber
from services.schedule_store import ScheduleStore


router = APIRouter()


@router.get("/probe", response_model=ProbeOut)
def probe_teacher(
    teacher_id: str = Query(min_length=1),
    day: str = Query(min_length=1),
    period: int = Query(),
    exclude_routine_id: str | None = Query(default=None),
    _admin=Depends(require_admin),
    store: ScheduleStore = Depends(get_store),
) -> ProbeOut:
    """Is the teacher already booked at (day, period) in another routine?

    Read failures come back as status UNKNOWN rather than an error.
    """

    result = ConflictProber(store).find_conflict(teacher_id, day, period, exclude_routine_id)
    return ProbeOut.from_result(result)
