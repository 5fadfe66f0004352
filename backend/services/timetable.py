from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ScheduleValidationError(ValueError):
    """Rejected input, caught before any I/O. Rendered as a field-level 422."""

    def __init__(self, code: str, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.field = field
        self.message = message


class Day(str, Enum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: "Day | str") -> "Day":
        """Accept a Day, a key ("mon") or a display name ("Monday"), case-insensitively."""

        if isinstance(value, Day):
            return value
        raw = str(value or "").strip().lower()
        for day in cls:
            if raw == day.value or raw == day.display_name.lower():
                return day
        raise ScheduleValidationError("INVALID_DAY", f"Unknown day {value!r}.", field="day")


_DISPLAY_NAMES = {
    Day.MON: "Monday",
    Day.TUE: "Tuesday",
    Day.WED: "Wednesday",
    Day.THU: "Thursday",
    Day.FRI: "Friday",
}

DAYS: tuple[Day, ...] = tuple(Day)


@dataclass(frozen=True)
class TimeSlot:
    period: int
    label: str
    is_break: bool = False


PERIODS: tuple[TimeSlot, ...] = (
    TimeSlot(1, "9:00 - 10:00"),
    TimeSlot(2, "10:00 - 11:00"),
    TimeSlot(3, "11:00 - 12:00"),
    TimeSlot(4, "12:00 - 1:00", is_break=True),
    TimeSlot(5, "1:00 - 2:00"),
    TimeSlot(6, "2:00 - 3:00"),
    TimeSlot(7, "3:00 - 4:00"),
    TimeSlot(8, "4:00 - 5:00"),
)

_PERIODS_BY_NUMBER = {slot.period: slot for slot in PERIODS}


def teaching_periods() -> list[TimeSlot]:
    return [slot for slot in PERIODS if not slot.is_break]


def require_teaching_period(period: int) -> int:
    try:
        number = int(period)
    except (TypeError, ValueError):
        raise ScheduleValidationError("INVALID_PERIOD", f"Period {period!r} is not a number.", field="period")

    slot = _PERIODS_BY_NUMBER.get(number)
    if slot is None:
        raise ScheduleValidationError("INVALID_PERIOD", f"Period {number} does not exist.", field="period")
    if slot.is_break:
        raise ScheduleValidationError("BREAK_PERIOD", f"Period {number} is a break and cannot be scheduled.", field="period")
    return number


def validate_identifier(value: str | None, *, field: str) -> str:
    ident = str(value or "").strip()
    if not ident:
        raise ScheduleValidationError("EMPTY_IDENTIFIER", f"{field} is required.", field=field)
    if "/" in ident:
        raise ScheduleValidationError("INVALID_IDENTIFIER", f"{field} cannot contain '/'.", field=field)
    return ident


def require_teacher_id(value: str | None) -> str:
    teacher_id = str(value or "").strip()
    if not teacher_id:
        raise ScheduleValidationError("EMPTY_TEACHER", "teacher_id is required.", field="teacher_id")
    return teacher_id
