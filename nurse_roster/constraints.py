"""
constraints.py — Post-hoc Roster Audit

Hard constraints (must NOT be violated by a generated roster):
  - DOUBLE_BOOKING: employee on two shifts on the same date
  - ON_LEAVE:       employee assigned on a date they are on leave

Soft constraints (reportable, expected to be rare):
  - REST_VIOLATION:      < min_rest_hours between two consecutive shifts of one
                         employee (the scorer penalises but cannot always prevent it)
  - CONSECUTIVE_NIGHTS:  night streak above max_consecutive_nights
  - UNDER_COVERAGE:      fewer staff than required for a date/shift/level
  - MENTORSHIP_GAP:      entry-level staff on a shift with nobody more senior

Usage:
  checker = ConstraintChecker(employees, leave_map)
  hard, soft = checker.check_all(assignments, requirements=request.coverage_requirements)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from nurse_roster.errors import ValidationError
from nurse_roster.models import CoverageRequirement, Employee, ScheduleAssignment, ShiftType
from nurse_roster.schedule_config import REQUIRABLE_SHIFTS, SCHEDULING_RULES
from nurse_roster.scoring import rest_hours_between

logger = logging.getLogger(__name__)


class ConstraintSeverity(Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass
class ConstraintViolation:
    severity: ConstraintSeverity
    constraint_type: str
    description: str
    date: Optional[date] = None
    staff: Optional[str] = None
    shift: Optional[ShiftType] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.constraint_type}"]
        if self.date:
            parts.append(f"date={self.date.isoformat()}")
        if self.staff:
            parts.append(f"staff={self.staff}")
        if self.shift:
            parts.append(f"shift={self.shift.value}")
        parts.append(f"→ {self.description}")
        return " | ".join(parts)


# Shift order within one calendar day
_SHIFT_ORDER = {s: i for i, s in enumerate(REQUIRABLE_SHIFTS)}


class ConstraintChecker:
    """
    Validates a generated roster (list of ScheduleAssignment) after the fact.

    Coverage requirements are expected in the form validate_request accepts:
    shift types that are not a requirable ShiftType raise ValidationError.
    """

    def __init__(
        self,
        employees: Sequence[Employee],
        leave_map: Optional[Mapping[date, Iterable[str]]] = None,
        min_rest_hours: float = SCHEDULING_RULES["min_rest_hours"],
        max_consecutive_nights: int = SCHEDULING_RULES["max_consecutive_nights"],
    ):
        self.employees = list(employees)
        self.leave_map = {d: set(ids) for d, ids in (leave_map or {}).items()}
        self.min_rest_hours = min_rest_hours
        self.max_consecutive_nights = max_consecutive_nights
        self._by_id: Dict[str, Employee] = {e.id: e for e in self.employees}

    def _name(self, employee_id: str) -> str:
        employee = self._by_id.get(employee_id)
        return employee.name if employee else employee_id

    def _shifts_by_employee(
        self, assignments: Sequence[ScheduleAssignment]
    ) -> Dict[str, List[Tuple[date, ShiftType]]]:
        """employee_id → [(date, shift)] in chronological order."""
        out: Dict[str, List[Tuple[date, ShiftType]]] = defaultdict(list)
        for a in assignments:
            for e in a.employees:
                out[e.id].append((a.date, a.shift_type))
        for shifts in out.values():
            shifts.sort(key=lambda pair: (pair[0], _SHIFT_ORDER.get(pair[1], 0)))
        return out

    # -----------------------------------------------------------------------
    # HARD: Double-booking check
    # -----------------------------------------------------------------------

    def check_double_booking(self, assignments: Sequence[ScheduleAssignment]) -> List[ConstraintViolation]:
        """Hard: No employee on more than one shift on the same date."""
        violations = []
        seen: Dict[Tuple[date, str], ShiftType] = {}
        for a in assignments:
            for e in a.employees:
                key = (a.date, e.id)
                if key in seen:
                    violations.append(ConstraintViolation(
                        severity=ConstraintSeverity.HARD,
                        constraint_type="DOUBLE_BOOKING",
                        description=(
                            f"{e.name} assigned to both {seen[key].value} "
                            f"and {a.shift_type.value} on {a.date.isoformat()}"
                        ),
                        date=a.date,
                        staff=e.name,
                        shift=a.shift_type,
                        details={"first_shift": seen[key].value},
                    ))
                else:
                    seen[key] = a.shift_type
        return violations

    # -----------------------------------------------------------------------
    # HARD: Leave check
    # -----------------------------------------------------------------------

    def check_leave(self, assignments: Sequence[ScheduleAssignment]) -> List[ConstraintViolation]:
        """Hard: No assignment on a leave date."""
        violations = []
        for a in assignments:
            on_leave = self.leave_map.get(a.date, set())
            for e in a.employees:
                if e.id in on_leave:
                    violations.append(ConstraintViolation(
                        severity=ConstraintSeverity.HARD,
                        constraint_type="ON_LEAVE",
                        description=f"{e.name} is on leave but was assigned {a.shift_type.value}",
                        date=a.date,
                        staff=e.name,
                        shift=a.shift_type,
                    ))
        return violations

    # -----------------------------------------------------------------------
    # SOFT: Minimum rest
    # -----------------------------------------------------------------------

    def check_rest(self, assignments: Sequence[ScheduleAssignment]) -> List[ConstraintViolation]:
        """Soft: Flag consecutive shifts of one employee closer than min_rest_hours."""
        violations = []
        for employee_id, shifts in self._shifts_by_employee(assignments).items():
            for (prev_date, prev_shift), (cur_date, cur_shift) in zip(shifts, shifts[1:]):
                rest = rest_hours_between(prev_date, prev_shift, cur_date, cur_shift)
                if rest < self.min_rest_hours:
                    violations.append(ConstraintViolation(
                        severity=ConstraintSeverity.SOFT,
                        constraint_type="REST_VIOLATION",
                        description=(
                            f"{self._name(employee_id)} has {rest:.0f}h rest between "
                            f"{prev_shift.value} on {prev_date.isoformat()} and "
                            f"{cur_shift.value} (minimum {self.min_rest_hours:g}h)"
                        ),
                        date=cur_date,
                        staff=self._name(employee_id),
                        shift=cur_shift,
                        details={"rest_hours": rest, "previous_date": prev_date.isoformat()},
                    ))
        return violations

    # -----------------------------------------------------------------------
    # SOFT: Consecutive nights
    # -----------------------------------------------------------------------

    def check_consecutive_nights(self, assignments: Sequence[ScheduleAssignment]) -> List[ConstraintViolation]:
        """Soft: Flag night streaks longer than max_consecutive_nights (one per streak)."""
        violations = []
        for employee_id, shifts in self._shifts_by_employee(assignments).items():
            streak: List[date] = []
            for d, shift in shifts + [(None, ShiftType.OFF)]:
                if shift == ShiftType.NIGHT and (not streak or d - streak[-1] == timedelta(days=1)):
                    streak.append(d)
                    continue
                if len(streak) > self.max_consecutive_nights:
                    violations.append(ConstraintViolation(
                        severity=ConstraintSeverity.SOFT,
                        constraint_type="CONSECUTIVE_NIGHTS",
                        description=(
                            f"{self._name(employee_id)} works {len(streak)} nights in a row "
                            f"(limit {self.max_consecutive_nights})"
                        ),
                        date=streak[0],
                        staff=self._name(employee_id),
                        shift=ShiftType.NIGHT,
                        details={"dates": [x.isoformat() for x in streak]},
                    ))
                streak = [d] if shift == ShiftType.NIGHT else []
        return violations

    # -----------------------------------------------------------------------
    # SOFT: Coverage
    # -----------------------------------------------------------------------

    def check_coverage(
        self,
        assignments: Sequence[ScheduleAssignment],
        requirements: Sequence[CoverageRequirement],
    ) -> List[ConstraintViolation]:
        """Soft: Flag every date/shift/level that has fewer staff than required."""
        staffed: Dict[Tuple[date, ShiftType, int], int] = defaultdict(int)
        for a in assignments:
            for e in a.employees:
                staffed[(a.date, a.shift_type, e.level)] += 1

        required: Dict[Tuple[date, ShiftType, int], int] = defaultdict(int)
        for req in requirements:
            if req.shift_type not in REQUIRABLE_SHIFTS:
                label = getattr(req.shift_type, "value", req.shift_type)
                raise ValidationError(
                    f"Unknown shift type {label!r} in requirement for {req.date.isoformat()}"
                )
            for lr in req.level_requirements:
                required[(req.date, req.shift_type, lr.level)] += lr.count

        violations = []
        for (d, shift, level), count in sorted(required.items(), key=lambda kv: (kv[0][0], _SHIFT_ORDER.get(kv[0][1], 0), kv[0][2])):
            have = staffed.get((d, shift, level), 0)
            if have < count:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.SOFT,
                    constraint_type="UNDER_COVERAGE",
                    description=f"Level {level} {shift.value} on {d.isoformat()}: {have}/{count} staffed",
                    date=d,
                    shift=shift,
                    details={"level": level, "required": count, "assigned": have},
                ))
        return violations

    # -----------------------------------------------------------------------
    # SOFT: Mentorship pairing
    # -----------------------------------------------------------------------

    def check_mentorship(self, assignments: Sequence[ScheduleAssignment]) -> List[ConstraintViolation]:
        """Soft: Entry-level staff should share a shift with someone more senior."""
        if not self.employees:
            return []
        lowest = min(e.level for e in self.employees)
        violations = []
        for a in assignments:
            levels = {e.level for e in a.employees}
            if lowest in levels and max(levels) == lowest:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.SOFT,
                    constraint_type="MENTORSHIP_GAP",
                    description=(
                        f"{a.shift_type.value} on {a.date.isoformat()} staffed only by "
                        f"level {lowest}: {', '.join(e.name for e in a.employees)}"
                    ),
                    date=a.date,
                    shift=a.shift_type,
                ))
        return violations

    # -----------------------------------------------------------------------
    # Run all checks
    # -----------------------------------------------------------------------

    def check_all(
        self,
        assignments: Sequence[ScheduleAssignment],
        requirements: Optional[Sequence[CoverageRequirement]] = None,
        mentorship: bool = False,
    ) -> Tuple[List[ConstraintViolation], List[ConstraintViolation]]:
        """
        Run all hard and soft constraint checks.

        Returns:
            (hard_violations, soft_violations)
        """
        hard: List[ConstraintViolation] = []
        soft: List[ConstraintViolation] = []

        hard.extend(self.check_double_booking(assignments))
        hard.extend(self.check_leave(assignments))
        soft.extend(self.check_rest(assignments))
        soft.extend(self.check_consecutive_nights(assignments))

        if requirements:
            soft.extend(self.check_coverage(assignments, requirements))

        if mentorship:
            soft.extend(self.check_mentorship(assignments))

        if hard:
            logger.error(f"Roster audit: {len(hard)} hard violations")
        return hard, soft

    # -----------------------------------------------------------------------
    # Input validation (roster)
    # -----------------------------------------------------------------------

    def validate_roster(
        self,
        requirements: Optional[Sequence[CoverageRequirement]] = None,
    ) -> Tuple[List[str], List[str]]:
        """
        Validate roster for structural integrity.

        Returns:
            (errors, warnings) as lists of strings
        """
        errors = []
        warnings = []

        if not self.employees:
            errors.append("Roster is empty")

        ids = [e.id for e in self.employees]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            errors.append(f"Duplicate employee ids in roster: {dupes}")

        names = [e.name for e in self.employees]
        dupe_names = sorted({n for n in names if names.count(n) > 1})
        if dupe_names:
            warnings.append(f"Duplicate names in roster (reports use names): {dupe_names}")

        for e in self.employees:
            if e.level < 1:
                warnings.append(f"{e.name}: level {e.level} < 1")

        if requirements:
            staffed_levels = {e.level for e in self.employees}
            needed = {lr.level for req in requirements for lr in req.level_requirements if lr.count > 0}
            for level in sorted(needed - staffed_levels):
                warnings.append(f"Coverage requires level {level} but no employee has that level")

        return errors, warnings
