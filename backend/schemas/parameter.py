from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ParameterPut(BaseModel):
    value: Any = None


class ParameterOut(BaseModel):
    key: str
    value: Any = None
    updated_at: datetime

    class Config:
        from_attributes = True
