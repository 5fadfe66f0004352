from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB

from models.base import Base


class Parameter(Base):
    """Free-form scheduling preference (work hours, lab placement, ...), keyed by name."""

    __tablename__ = "parameters"

    key = Column(Text, primary_key=True)
    value = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
