from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import get_db
from models.subject import Subject, SubjectTeacher
from schemas.subject import SubjectOut, SubjectPut, SubjectTeacherCreate, SubjectTeacherOut
from services.timetable import validate_identifier


logger = logging.getLogger(__name__)


router = APIRouter()


def _get_subject(db: Session, code: str) -> Subject:
    subject = db.get(Subject, code)
    if subject is None:
        raise HTTPException(status_code=404, detail="SUBJECT_NOT_FOUND")
    return subject


@router.get("/", response_model=list[SubjectOut])
def list_subjects(
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[SubjectOut]:
    return db.execute(select(Subject).order_by(Subject.code.asc())).scalars().all()


@router.put("/{code}", response_model=SubjectOut)
def put_subject(
    code: str,
    payload: SubjectPut,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SubjectOut:
    code = validate_identifier(code, field="code")
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="SUBJECT_NAME_REQUIRED")

    subject = db.get(Subject, code)
    if subject is None:
        subject = Subject(code=code, name=name)
        db.add(subject)
    else:
        subject.name = name

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CONFLICT")
    db.refresh(subject)
    return subject


@router.delete("/{code}")
def delete_subject(
    code: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    subject = _get_subject(db, code)
    # Existing routine cells keep their denormalized subject/teacher names.
    for teacher in db.execute(select(SubjectTeacher).where(SubjectTeacher.subject_code == code)).scalars().all():
        db.delete(teacher)
    db.flush()
    db.delete(subject)
    db.commit()
    return {"ok": True}


@router.get("/{code}/teachers", response_model=list[SubjectTeacherOut])
def list_subject_teachers(
    code: str,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[SubjectTeacherOut]:
    _get_subject(db, code)
    q = select(SubjectTeacher).where(SubjectTeacher.subject_code == code).order_by(SubjectTeacher.name.asc())
    return db.execute(q).scalars().all()


@router.post("/{code}/teachers", response_model=SubjectTeacherOut)
def add_subject_teacher(
    code: str,
    payload: SubjectTeacherCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SubjectTeacherOut:
    _get_subject(db, code)
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="TEACHER_NAME_REQUIRED")

    teacher = SubjectTeacher(subject_code=code, name=name)
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    logger.info("Teacher added subject=%s teacher_id=%s", code, teacher.id)
    return teacher
