from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

import models  # noqa: F401  (registers every table on Base.metadata)
from core.database import ENGINE
from models.base import Base


logger = logging.getLogger(__name__)


def bootstrap_schema(engine: Engine | None = None) -> None:
    """Create missing tables. Safe to run on every startup; never alters existing ones."""

    engine = engine or ENGINE
    Base.metadata.create_all(engine)
    logger.info("Schema ready (%d tables)", len(Base.metadata.tables))
