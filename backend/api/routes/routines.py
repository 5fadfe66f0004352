from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.deps import get_store, require_admin
from core.database import get_db
from models.routine import Routine
from schemas.routine import (
    AssignmentOut,
    GridCellOut,
    GridDayOut,
    PeriodOut,
    RoutineCreate,
    RoutineGridOut,
    RoutineOut,
    RoutineUpdate,
)
from services.schedule_store import ScheduleStore
from services.timetable import DAYS, PERIODS, Day, validate_identifier


logger = logging.getLogger(__name__)


router = APIRouter()


def _get_routine(db: Session, routine_id: str) -> Routine:
    routine = db.get(Routine, routine_id)
    if routine is None:
        raise HTTPException(status_code=404, detail="ROUTINE_NOT_FOUND")
    return routine


@router.get("/", response_model=list[RoutineOut])
def list_routines(
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[RoutineOut]:
    return db.execute(select(Routine).order_by(Routine.id.asc())).scalars().all()


@router.post("/", response_model=RoutineOut)
def create_routine(
    payload: RoutineCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> RoutineOut:
    # Create-or-update: posting an existing id only touches the name when one is given.
    routine_id = validate_identifier(payload.id, field="id")
    name = (payload.name or "").strip() or None

    routine = db.get(Routine, routine_id)
    if routine is None:
        routine = Routine(id=routine_id, name=name)
        db.add(routine)
    elif name is not None:
        routine.name = name

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CONFLICT")
    db.refresh(routine)
    logger.info("Routine saved id=%s", routine_id)
    return routine


@router.patch("/{routine_id}", response_model=RoutineOut)
def rename_routine(
    routine_id: str,
    payload: RoutineUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> RoutineOut:
    routine = _get_routine(db, routine_id)
    routine.name = payload.name.strip()
    db.commit()
    db.refresh(routine)
    return routine


@router.delete("/{routine_id}")
def delete_routine(
    routine_id: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
    store: ScheduleStore = Depends(get_store),
) -> dict:
    _get_routine(db, routine_id)
    store.delete_routine(routine_id)
    logger.info("Routine deleted id=%s", routine_id)
    return {"ok": True}


@router.get("/{routine_id}/days/{day}", response_model=list[PeriodOut])
def get_routine_day(
    routine_id: str,
    day: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
    store: ScheduleStore = Depends(get_store),
) -> list[PeriodOut]:
    _get_routine(db, routine_id)
    cells = store.fetch_day(routine_id, Day.parse(day))
    return [
        PeriodOut(period=int(key), assignment=AssignmentOut.model_validate(assignment))
        for key, assignment in cells.items()
    ]


@router.get("/{routine_id}/grid", response_model=RoutineGridOut)
def get_routine_grid(
    routine_id: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
    store: ScheduleStore = Depends(get_store),
) -> RoutineGridOut:
    routine = _get_routine(db, routine_id)

    days: list[GridDayOut] = []
    for day in DAYS:
        cells = store.fetch_day(routine_id, day)
        row: list[GridCellOut] = []
        for slot in PERIODS:
            assignment = None if slot.is_break else cells.get(str(slot.period))
            row.append(
                GridCellOut(
                    period=slot.period,
                    label=slot.label,
                    is_break=slot.is_break,
                    assignment=AssignmentOut.model_validate(assignment) if assignment is not None else None,
                )
            )
        days.append(GridDayOut(day=day.value, display_name=day.display_name, cells=row))

    return RoutineGridOut(routine_id=routine.id, routine_name=routine.name or routine.id, days=days)
