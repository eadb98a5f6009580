"""
engine.py — Assignment Driver (constraint-aware greedy rostering)

Algorithm:
  For each date in [start_date, end_date], ascending:
    For each coverage requirement on that date (in request order):
      For each (level, count) in the requirement:
        pool   = employees at that level, minus anyone on leave that date
        ranked = score every pool member (scoring.py), sort descending
        pick   = top `count` with score > 0
        ledger.update(...) for each pick
      Emit one ScheduleAssignment with every pick, or nothing if no one was picked.

A level bucket that ends short is a CoverageGap: reported to the observer and
kept on the driver, never raised. A pick that still falls short of the minimum
rest (the penalty lowers the score but cannot always exclude the candidate) is
a RestException, reported the same way. There is no backtracking and no retry.

Usage:
  driver = AssignmentDriver(rng=random.Random(42))
  assignments = driver.run(request, employees)
  driver.coverage_gaps, driver.rest_exceptions, driver.ledger
"""

import logging
import random
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from nurse_roster.errors import ValidationError
from nurse_roster.models import (
    CoverageGap,
    CoverageRequirement,
    Employee,
    GenerationOptions,
    RestException,
    ScheduleAssignment,
    ScheduleRequest,
    ShiftType,
)
from nurse_roster.schedule_config import (
    REQUIRABLE_SHIFTS,
    SCHEDULING_RULES,
    SCORING_WEIGHTS,
)
from nurse_roster.scoring import Booking, is_weekend, rank_candidates, rest_hours_between
from nurse_roster.workload import WorkloadLedger

logger = logging.getLogger(__name__)

# Type alias: date → employee ids unavailable that day
LeaveMap = Mapping[date, Iterable[str]]


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

def get_date_range(start: date, end: date) -> List[date]:
    """All dates in [start, end]."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def validate_request(
    request: ScheduleRequest,
    employees: Sequence[Employee],
    max_schedule_days: int = SCHEDULING_RULES["max_schedule_days"],
) -> None:
    """Raise ValidationError if the request cannot be scheduled at all."""
    if request.start_date > request.end_date:
        raise ValidationError(
            f"start_date {request.start_date.isoformat()} is after "
            f"end_date {request.end_date.isoformat()}"
        )

    n_days = (request.end_date - request.start_date).days + 1
    if n_days > max_schedule_days:
        raise ValidationError(
            f"Date range covers {n_days} days; at most {max_schedule_days} per run"
        )

    if not employees:
        raise ValidationError("Employee roster is empty")

    ids = [e.id for e in employees]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ValidationError(f"Duplicate employee ids in roster: {dupes}")

    for req in request.coverage_requirements:
        if req.shift_type not in REQUIRABLE_SHIFTS:
            label = getattr(req.shift_type, "value", req.shift_type)
            raise ValidationError(
                f"Unknown shift type {label!r} in requirement for "
                f"{req.date.isoformat()}; expected one of "
                f"{[s.value for s in REQUIRABLE_SHIFTS]}"
            )
        for level_req in req.level_requirements:
            if level_req.count < 0:
                raise ValidationError(
                    f"Negative headcount {level_req.count} for level {level_req.level} "
                    f"on {req.date.isoformat()} {req.shift_type.value}"
                )


# ---------------------------------------------------------------------------
# Observer (logging / metrics side channel)
# ---------------------------------------------------------------------------

class SchedulingObserver:
    """No-op base. Subclass and pass to AssignmentDriver to receive run events."""

    def on_run_started(self, request: ScheduleRequest, employees: Sequence[Employee]) -> None:
        pass

    def on_assignment(self, assignment: ScheduleAssignment) -> None:
        pass

    def on_under_coverage(self, gap: CoverageGap) -> None:
        pass

    def on_mentorship_gap(self, assignment: ScheduleAssignment) -> None:
        pass

    def on_rest_exception(self, exception: RestException) -> None:
        pass

    def on_run_completed(
        self,
        assignments: Sequence[ScheduleAssignment],
        gaps: Sequence[CoverageGap],
    ) -> None:
        pass


class LoggingObserver(SchedulingObserver):
    """Default observer: forwards events to a logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_run_started(self, request, employees):
        self.log.info(
            f"Scheduling {request.start_date.isoformat()} → {request.end_date.isoformat()} "
            f"for {len(employees)} employees, "
            f"{len(request.coverage_requirements)} coverage requirements"
        )

    def on_assignment(self, assignment):
        self.log.debug(
            f"{assignment.date.isoformat()} {assignment.shift_type.value} → "
            f"{', '.join(e.name for e in assignment.employees)}"
        )

    def on_under_coverage(self, gap):
        self.log.warning(f"Under-coverage: {gap}")

    def on_mentorship_gap(self, assignment):
        self.log.warning(
            f"Mentorship gap: {assignment.date.isoformat()} {assignment.shift_type.value} "
            f"has only entry-level staff"
        )

    def on_rest_exception(self, exception):
        self.log.warning(f"Rest below minimum: {exception}")

    def on_run_completed(self, assignments, gaps):
        filled = sum(len(a.employees) for a in assignments)
        self.log.info(
            f"Scheduling complete: {len(assignments)} assignments, {filled} shifts filled, "
            f"{len(gaps)} coverage gaps"
        )


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

class AssignmentDriver:
    """
    Greedy single-pass driver. One instance per run: the ledger and booking
    index it builds are owned by this instance and reset by each run().
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        observer: Optional[SchedulingObserver] = None,
        weights: Optional[Mapping[str, float]] = None,
        min_rest_hours: float = SCHEDULING_RULES["min_rest_hours"],
        lookback_days: int = SCHEDULING_RULES["lookback_days"],
    ):
        self.rng = rng if rng is not None else random.Random(seed)
        self.observer = observer or LoggingObserver()
        self.weights: Dict[str, float] = dict(SCORING_WEIGHTS)
        if weights:
            self.weights.update(weights)
        self.min_rest_hours = min_rest_hours
        self.lookback_days = lookback_days

        self.ledger: Optional[WorkloadLedger] = None
        self.booking: Booking = {}
        self.coverage_gaps: List[CoverageGap] = []
        self.rest_exceptions: List[RestException] = []

    def run(
        self,
        request: ScheduleRequest,
        employees: Sequence[Employee],
        leave_map: Optional[LeaveMap] = None,
    ) -> List[ScheduleAssignment]:
        validate_request(request, employees)

        options = request.generation_options or GenerationOptions()
        leave_map = leave_map or {}

        self.ledger = WorkloadLedger(employees)
        self.booking = {}
        self.coverage_gaps = []
        self.rest_exceptions = []
        assignments: List[ScheduleAssignment] = []

        by_level: Dict[int, List[Employee]] = defaultdict(list)
        for employee in employees:
            by_level[employee.level].append(employee)
        lowest_level = min(by_level)

        by_date: Dict[date, List[CoverageRequirement]] = defaultdict(list)
        for req in request.coverage_requirements:
            if not request.start_date <= req.date <= request.end_date:
                logger.debug(f"Requirement on {req.date.isoformat()} is outside the range; ignored")
                continue
            by_date[req.date].append(req)

        self.observer.on_run_started(request, employees)

        for day in get_date_range(request.start_date, request.end_date):
            weekend = is_weekend(day)
            unavailable = set(leave_map.get(day, []))

            for req in by_date.get(day, []):
                assignment = self._fill_requirement(req, weekend, by_level, unavailable, options)
                if assignment is None:
                    continue
                assignments.append(assignment)
                self.observer.on_assignment(assignment)

                if options.enforce_mentorship_pairing and needs_mentor(assignment, lowest_level):
                    self.observer.on_mentorship_gap(assignment)

        self.observer.on_run_completed(assignments, self.coverage_gaps)
        return assignments

    def _fill_requirement(
        self,
        req: CoverageRequirement,
        weekend: bool,
        by_level: Mapping[int, Sequence[Employee]],
        unavailable: set,
        options: GenerationOptions,
    ) -> Optional[ScheduleAssignment]:
        selected: List[Employee] = []

        for level_req in req.level_requirements:
            if level_req.count == 0:
                continue

            pool = [e for e in by_level.get(level_req.level, []) if e.id not in unavailable]
            ranked = rank_candidates(
                pool, req.date, req.shift_type, weekend, self.ledger, self.booking, self.rng,
                options=options, weights=self.weights,
                min_rest_hours=self.min_rest_hours, lookback_days=self.lookback_days,
            )
            chosen = [employee for employee, score in ranked if score > 0][:level_req.count]

            day_booking = self.booking.setdefault(req.date, {})
            for employee in chosen:
                self._check_rest(employee, req)
                self.ledger.update(employee.id, req.shift_type, weekend, req.date)
                day_booking[employee.id] = req.shift_type

            if len(chosen) < level_req.count:
                gap = CoverageGap(
                    date=req.date,
                    shift_type=req.shift_type,
                    level=level_req.level,
                    required=level_req.count,
                    assigned=len(chosen),
                )
                self.coverage_gaps.append(gap)
                self.observer.on_under_coverage(gap)

            selected.extend(chosen)

        if not selected:
            return None
        return ScheduleAssignment(date=req.date, shift_type=req.shift_type, employees=tuple(selected))

    def _check_rest(self, employee: Employee, req: CoverageRequirement) -> None:
        """Record a pick made short of the minimum rest. Call before ledger.update()."""
        workload = self.ledger.get(employee.id)
        if workload.last_shift_date is None:
            return
        rest = rest_hours_between(
            workload.last_shift_date, workload.last_shift_type, req.date, req.shift_type
        )
        if rest >= self.min_rest_hours:
            return
        exception = RestException(
            date=req.date,
            shift_type=req.shift_type,
            employee_id=employee.id,
            previous_date=workload.last_shift_date,
            previous_shift=workload.last_shift_type,
            rest_hours=rest,
        )
        self.rest_exceptions.append(exception)
        self.observer.on_rest_exception(exception)


def needs_mentor(assignment: ScheduleAssignment, lowest_level: int) -> bool:
    """True if the shift has entry-level staff and nobody above entry level."""
    levels = {e.level for e in assignment.employees}
    return lowest_level in levels and all(lvl <= lowest_level for lvl in levels)


def generate_schedule(
    request: ScheduleRequest,
    employees: Sequence[Employee],
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
    observer: Optional[SchedulingObserver] = None,
    leave_map: Optional[LeaveMap] = None,
) -> List[ScheduleAssignment]:
    """One-shot convenience wrapper around AssignmentDriver.run()."""
    driver = AssignmentDriver(rng=rng, seed=seed, observer=observer)
    return driver.run(request, employees, leave_map=leave_map)


# ---------------------------------------------------------------------------
# Fairness Metrics
# ---------------------------------------------------------------------------

def calculate_fairness_metrics(
    assignments: Sequence[ScheduleAssignment],
    employees: Sequence[Employee],
    coverage_gaps: Optional[Sequence[CoverageGap]] = None,
) -> Dict[str, Any]:
    """
    Per-employee counts, spread and fairness score for a generated roster.

    Returns:
        {
          mean, std, cv, min, max, fairness_score,
          counts: {employee_id: int},
          night_counts, weekend_counts: {employee_id: int},
          per_shift: {shift: {employee_id: int}},
          per_shift_cv: {shift: float},
          night_distribution: "nights/total",
          weekend_coverage: int (percent of weekend slots, 3 shifts/day),
          unfilled: int,
        }
    """
    counts: Dict[str, int] = {e.id: 0 for e in employees}
    night_counts: Dict[str, int] = {e.id: 0 for e in employees}
    weekend_counts: Dict[str, int] = {e.id: 0 for e in employees}
    per_shift: Dict[str, Dict[str, int]] = {}
    total = nights = weekend_shifts = 0
    weekend_days = set()

    for assignment in assignments:
        shift = assignment.shift_type.value
        weekend = is_weekend(assignment.date)
        if weekend:
            weekend_days.add(assignment.date)
        per_shift.setdefault(shift, {e.id: 0 for e in employees})
        for employee in assignment.employees:
            total += 1
            if assignment.shift_type == ShiftType.NIGHT:
                nights += 1
            if weekend:
                weekend_shifts += 1
            if employee.id not in counts:
                # Not on the roster passed in (e.g. a float pool nurse)
                continue
            counts[employee.id] += 1
            per_shift[shift][employee.id] += 1
            if assignment.shift_type == ShiftType.NIGHT:
                night_counts[employee.id] += 1
            if weekend:
                weekend_counts[employee.id] += 1

    values = np.array(list(counts.values()), dtype=float)
    mean_val = float(values.mean()) if values.size else 0.0
    std_val = float(values.std()) if values.size else 0.0
    cv = (std_val / mean_val * 100) if mean_val > 0 else 0.0

    per_shift_cv: Dict[str, float] = {}
    for shift, shift_counts in per_shift.items():
        sv = np.array(list(shift_counts.values()), dtype=float)
        sm = float(sv.mean()) if sv.size else 0.0
        per_shift_cv[shift] = float(sv.std() / sm * 100) if sm > 0 else 0.0

    n_weekend_days = len(weekend_days)
    weekend_coverage = (
        round(weekend_shifts / (n_weekend_days * len(REQUIRABLE_SHIFTS)) * 100)
        if n_weekend_days else 0
    )

    return {
        "mean": mean_val,
        "std": std_val,
        "cv": cv,
        "min": int(values.min()) if values.size else 0,
        "max": int(values.max()) if values.size else 0,
        "fairness_score": round(max(0.0, 100.0 - std_val * 10)),
        "counts": counts,
        "night_counts": night_counts,
        "weekend_counts": weekend_counts,
        "per_shift": per_shift,
        "per_shift_cv": per_shift_cv,
        "night_distribution": f"{nights}/{total}",
        "weekend_coverage": weekend_coverage,
        "unfilled": sum(g.missing for g in coverage_gaps or []),
    }
