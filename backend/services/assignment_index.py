from __future__ import annotations

from typing import Iterable

from services.timetable import Day, require_teaching_period


SlotKey = tuple[Day, int]


class AssignmentIndex:
    """Same-session view of which teacher holds which slot in which routine.

    Layout: ``teacher_id -> (day, period) -> {routine_id: None}``. The innermost
    dict is an insertion-ordered set, so conflict lookups are deterministic.

    Empty containers never persist: dropping the last routine from a slot drops
    the slot, dropping the last slot from a teacher drops the teacher.

    Only routines opened in the owning workspace are visible here. The remote
    prober is the authoritative check.
    """

    def __init__(self) -> None:
        self._claims: dict[str, dict[SlotKey, dict[str, None]]] = {}

    def __contains__(self, teacher_id: object) -> bool:
        return teacher_id in self._claims

    def __len__(self) -> int:
        return len(self._claims)

    @staticmethod
    def _slot(day: Day | str, period: int) -> SlotKey:
        return Day.parse(day), require_teaching_period(period)

    def _release(self, teacher_id: str, slot: SlotKey, routine_id: str) -> None:
        slots = self._claims.get(teacher_id)
        if not slots or slot not in slots:
            return
        slots[slot].pop(routine_id, None)
        if not slots[slot]:
            del slots[slot]
        if not slots:
            del self._claims[teacher_id]

    def record_assignment(
        self,
        routine_id: str,
        day: Day | str,
        period: int,
        teacher_id: str | None,
        previous_teacher_id: str | None = None,
    ) -> None:
        """Move the slot's claim in ``routine_id`` from ``previous_teacher_id`` to ``teacher_id``.

        ``None`` (or "") for either teacher means "no teacher". Idempotent.
        """

        slot = self._slot(day, period)
        if previous_teacher_id:
            self._release(previous_teacher_id, slot, routine_id)
        if teacher_id:
            self._claims.setdefault(teacher_id, {}).setdefault(slot, {})[routine_id] = None

    def _holders(self, day: Day | str, period: int, teacher_id: str) -> dict[str, None]:
        return self._claims.get(teacher_id, {}).get(self._slot(day, period), {})

    def is_available(self, routine_id: str, day: Day | str, period: int, teacher_id: str) -> bool:
        holders = self._holders(day, period, teacher_id)
        return not holders or list(holders) == [routine_id]

    def conflicting_routine(self, routine_id: str, day: Day | str, period: int, teacher_id: str) -> str | None:
        # More than one other holder should not happen; the first recorded one wins.
        for holder in self._holders(day, period, teacher_id):
            if holder != routine_id:
                return holder
        return None

    def remove_routine(self, routine_id: str) -> None:
        for teacher_id in list(self._claims):
            for slot in list(self._claims.get(teacher_id, {})):
                self._release(teacher_id, slot, routine_id)

    def rebuild_routine(self, routine_id: str, claims: Iterable[tuple[Day | str, int, str | None]]) -> None:
        """Replace every claim of ``routine_id`` with ``(day, period, teacher_id)`` triples."""

        self.remove_routine(routine_id)
        for day, period, teacher_id in claims:
            self.record_assignment(routine_id, day, period, teacher_id)

    def snapshot(self) -> dict[str, dict[str, list[str]]]:
        return {
            teacher_id: {f"{day.value}-{period}": list(holders) for (day, period), holders in slots.items()}
            for teacher_id, slots in self._claims.items()
        }
