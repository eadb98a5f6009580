"""
workload.py — Workload Ledger

Per-employee running counters used by the candidate scorer:
  total shifts, night shifts, weekend shifts, consecutive-night streak,
  date and type of the last shift worked.

One ledger per scheduling run. The AssignmentDriver is its only writer and
updates it in date-ascending order; never share a ledger between runs.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Iterable, Iterator, Optional

from nurse_roster.models import Employee, ShiftType


@dataclass
class EmployeeWorkload:
    employee_id: str
    total_shifts: int = 0
    night_shifts: int = 0
    weekend_shifts: int = 0
    consecutive_nights: int = 0
    last_shift_date: Optional[date] = None
    last_shift_type: Optional[ShiftType] = None


class WorkloadLedger:
    """Single-owner record store of EmployeeWorkload keyed by employee id."""

    def __init__(self, employees: Iterable[Employee]):
        self._entries: Dict[str, EmployeeWorkload] = {
            e.id: EmployeeWorkload(employee_id=e.id) for e in employees
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, employee_id: str) -> bool:
        return employee_id in self._entries

    def __iter__(self) -> Iterator[EmployeeWorkload]:
        return iter(self._entries.values())

    def get(self, employee_id: str) -> EmployeeWorkload:
        return self._entries[employee_id]

    def update(
        self,
        employee_id: str,
        shift_type: ShiftType,
        is_weekend: bool,
        shift_date: date,
    ) -> EmployeeWorkload:
        """
        Record one committed shift.

        consecutive_nights counts recorded nights with no other recorded shift
        between them, so days off inside a run of nights do not reset it. The
        calendar-adjacent streak is ConstraintChecker.check_consecutive_nights.

        Unknown employee_id is a caller bug and raises KeyError.
        """
        entry = self._entries[employee_id]
        if entry.last_shift_date is not None and shift_date < entry.last_shift_date:
            raise ValueError(
                f"Ledger updates must be chronological: {employee_id} last shift "
                f"{entry.last_shift_date.isoformat()}, got {shift_date.isoformat()}"
            )

        entry.total_shifts += 1

        if shift_type == ShiftType.NIGHT:
            entry.night_shifts += 1
            if entry.last_shift_type == ShiftType.NIGHT:
                entry.consecutive_nights += 1
            else:
                entry.consecutive_nights = 1
        else:
            entry.consecutive_nights = 0

        if is_weekend:
            entry.weekend_shifts += 1

        entry.last_shift_date = shift_date
        entry.last_shift_type = shift_type
        return entry

    def snapshot(self) -> Dict[str, EmployeeWorkload]:
        """Copies of every entry; safe to hand to reporting code."""
        return {k: replace(v) for k, v in self._entries.items()}

    def total_shifts(self) -> int:
        return sum(e.total_shifts for e in self._entries.values())
