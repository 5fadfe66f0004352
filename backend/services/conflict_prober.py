from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from services.schedule_store import ScheduleStore
from services.timetable import Day, require_teacher_id, require_teaching_period


logger = logging.getLogger(__name__)


class ProbeStatus(str, Enum):
    CLEAR = "CLEAR"
    CONFLICT = "CONFLICT"
    # A read failed; the probe fails open but says so.
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ProbeResult:
    status: ProbeStatus
    routine_id: str | None = None
    routine_name: str | None = None
    error: str | None = None

    @property
    def is_conflict(self) -> bool:
        return self.status is ProbeStatus.CONFLICT

    @classmethod
    def clear(cls) -> "ProbeResult":
        return cls(ProbeStatus.CLEAR)

    @classmethod
    def conflict(cls, routine_id: str, routine_name: str) -> "ProbeResult":
        return cls(ProbeStatus.CONFLICT, routine_id=routine_id, routine_name=routine_name)

    @classmethod
    def unknown(cls, error: str) -> "ProbeResult":
        return cls(ProbeStatus.UNKNOWN, error=error)


class ConflictProber:
    """Authoritative cross-session check against persisted routines.

    One day-collection fetch and one key lookup per other routine; the first
    match wins. Routine enumeration order is whatever the store returns.
    Read-only, so concurrent probes are independent.
    """

    def __init__(self, store: ScheduleStore) -> None:
        self.store = store

    def find_conflict(
        self,
        teacher_id: str,
        day: Day | str,
        period: int,
        exclude_routine_id: str | None,
    ) -> ProbeResult:
        # Input validation raises; only I/O failures degrade to UNKNOWN.
        teacher_id = require_teacher_id(teacher_id)
        day = Day.parse(day)
        key = str(require_teaching_period(period))

        try:
            for routine_id in self.store.list_routine_ids():
                if routine_id == exclude_routine_id:
                    continue
                cell = self.store.fetch_day(routine_id, day).get(key)
                if cell is not None and cell.teacher_id == teacher_id:
                    return ProbeResult.conflict(routine_id, self.store.routine_display_name(routine_id))
        except Exception as exc:
            logger.warning(
                "Conflict probe failed; assuming clear teacher_id=%s day=%s period=%s",
                teacher_id,
                day.value,
                key,
                exc_info=exc,
            )
            self.store.recover()
            return ProbeResult.unknown(str(exc) or exc.__class__.__name__)

        return ProbeResult.clear()
