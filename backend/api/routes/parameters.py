from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import get_db
from models.parameter import Parameter
from schemas.parameter import ParameterOut, ParameterPut
from services.timetable import validate_identifier


router = APIRouter()


@router.get("/", response_model=list[ParameterOut])
def list_parameters(
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[ParameterOut]:
    return db.execute(select(Parameter).order_by(Parameter.key.asc())).scalars().all()


@router.get("/{key}", response_model=ParameterOut)
def get_parameter(
    key: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> ParameterOut:
    parameter = db.get(Parameter, key)
    if parameter is None:
        raise HTTPException(status_code=404, detail="PARAMETER_NOT_FOUND")
    return parameter


@router.put("/{key}", response_model=ParameterOut)
def put_parameter(
    key: str,
    payload: ParameterPut,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> ParameterOut:
    key = validate_identifier(key, field="key")
    parameter = db.get(Parameter, key)
    if parameter is None:
        parameter = Parameter(key=key)
        db.add(parameter)
    parameter.value = payload.value
    parameter.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(parameter)
    return parameter
