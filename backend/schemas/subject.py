from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SubjectPut(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class SubjectOut(BaseModel):
    code: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class SubjectTeacherCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class SubjectTeacherOut(BaseModel):
    id: str
    subject_code: str
    name: str

    class Config:
        from_attributes = True
