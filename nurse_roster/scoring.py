"""
scoring.py — Candidate Scorer

Maps (employee, date, shift type, ledger, recent pattern) → suitability score.
Higher is better; the driver treats score <= 0 as "unsuitable" and leaves the
slot short rather than forcing an unsafe assignment.

The scorer is pure apart from the injected random source used for the
tie-break, so a seeded random.Random makes every run reproducible.

See schedule_config.py for the weight table.
"""

import random
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from nurse_roster.models import (
    Employee,
    GenerationOptions,
    ScheduleAssignment,
    ShiftType,
)
from nurse_roster.schedule_config import (
    SCHEDULING_RULES,
    SCORING_WEIGHTS,
    SHIFT_DEFINITIONS,
    WEEKEND_WEEKDAYS,
)
from nurse_roster.workload import WorkloadLedger

# Type alias: date → {employee_id: shift_type}
Booking = Dict[date, Dict[str, ShiftType]]


# ---------------------------------------------------------------------------
# Booking index
# ---------------------------------------------------------------------------

def index_assignments(assignments: Iterable[ScheduleAssignment]) -> Booking:
    """Build the date → {employee_id: shift} lookup from committed assignments."""
    booking: Booking = {}
    for assignment in assignments:
        day = booking.setdefault(assignment.date, {})
        for employee in assignment.employees:
            day[employee.id] = assignment.shift_type
    return booking


def is_weekend(d: date) -> bool:
    return d.weekday() in WEEKEND_WEEKDAYS


# ---------------------------------------------------------------------------
# Shift clock
# ---------------------------------------------------------------------------

def shift_start(d: date, shift_type: ShiftType) -> datetime:
    return datetime.combine(d, time(SHIFT_DEFINITIONS[shift_type]["start_hour"]))


def shift_end(d: date, shift_type: ShiftType) -> datetime:
    """End of a shift that starts on d; overnight shifts end on the next day."""
    clock = SHIFT_DEFINITIONS[shift_type]
    end = datetime.combine(d, time(clock["end_hour"]))
    if clock["end_hour"] <= clock["start_hour"] and clock["hours"] > 0:
        end += timedelta(days=1)
    return end


def rest_hours_between(
    prev_date: date,
    prev_shift: ShiftType,
    next_date: date,
    next_shift: ShiftType,
) -> float:
    """Hours between the end of the previous shift and the start of the next one."""
    gap = shift_start(next_date, next_shift) - shift_end(prev_date, prev_shift)
    return gap.total_seconds() / 3600


# ---------------------------------------------------------------------------
# Recent pattern
# ---------------------------------------------------------------------------

def get_recent_pattern(
    employee_id: str,
    target_date: date,
    booking: Mapping[date, Mapping[str, ShiftType]],
    lookback_days: int = SCHEDULING_RULES["lookback_days"],
) -> List[ShiftType]:
    """
    Shift types for the lookback_days before target_date, oldest first.
    Days with no assignment are OFF.
    """
    pattern: List[ShiftType] = []
    for offset in range(lookback_days, 0, -1):
        day = booking.get(target_date - timedelta(days=offset), {})
        pattern.append(day.get(employee_id, ShiftType.OFF))
    return pattern


def count_consecutive_work(pattern: Sequence[ShiftType]) -> int:
    """Working days at the end of the pattern (off and leave break the streak)."""
    count = 0
    for shift in reversed(pattern):
        if shift in (ShiftType.OFF, ShiftType.LEAVE):
            break
        count += 1
    return count


def evaluate_pattern(
    pattern: Sequence[ShiftType],
    next_shift: ShiftType,
    weights: Mapping[str, float] = SCORING_WEIGHTS,
) -> float:
    """Safety adjustment for placing next_shift after the recent pattern."""
    score = 0.0
    recent_nights = sum(1 for s in pattern if s == ShiftType.NIGHT)
    last_shift = pattern[-1] if pattern else ShiftType.OFF

    if last_shift == ShiftType.NIGHT and next_shift == ShiftType.DAY:
        score += weights["night_to_day"]

    if next_shift == ShiftType.NIGHT and recent_nights >= weights["recent_night_threshold"]:
        score += weights["night_with_recent_nights"]

    if last_shift == next_shift:
        score += weights["same_as_previous"]

    if (
        count_consecutive_work(pattern) >= SCHEDULING_RULES["consecutive_work_limit"]
        and next_shift != ShiftType.OFF
    ):
        score += weights["long_work_streak"]

    return score


# ---------------------------------------------------------------------------
# Candidate score
# ---------------------------------------------------------------------------

def score_candidate(
    employee: Employee,
    target_date: date,
    shift_type: ShiftType,
    weekend: bool,
    ledger: WorkloadLedger,
    booking: Mapping[date, Mapping[str, ShiftType]],
    rng: random.Random,
    options: Optional[GenerationOptions] = None,
    weights: Mapping[str, float] = SCORING_WEIGHTS,
    min_rest_hours: float = SCHEDULING_RULES["min_rest_hours"],
    lookback_days: int = SCHEDULING_RULES["lookback_days"],
) -> float:
    """
    Score one employee for (target_date, shift_type).

    A candidate already booked on target_date gets the disqualifying score
    without consuming a random draw.
    """
    options = options or GenerationOptions()

    if employee.id in booking.get(target_date, {}):
        return weights["already_assigned"]

    workload = ledger.get(employee.id)
    score = weights["base"]

    if options.enforce_fairness:
        score += weights["per_total_shift"] * workload.total_shifts

    if shift_type == ShiftType.NIGHT:
        if workload.consecutive_nights >= 2:
            score += weights["night_after_two_nights"]
        elif workload.consecutive_nights == 1:
            score += weights["night_after_one_night"]
        score += weights["per_night_shift"] * workload.night_shifts

    if weekend:
        score += weights["per_weekend_shift"] * workload.weekend_shifts

    recent = get_recent_pattern(employee.id, target_date, booking, lookback_days)
    score += evaluate_pattern(recent, shift_type, weights)

    if options.prioritize_preferences and shift_type in employee.preferred_shifts:
        score += weights["preferred_shift"]

    score += (rng.random() - 0.5) * weights["tie_break_spread"]

    if workload.last_shift_date is not None and workload.last_shift_type is not None:
        rest = rest_hours_between(
            workload.last_shift_date, workload.last_shift_type, target_date, shift_type
        )
        if rest < min_rest_hours:
            score += weights["insufficient_rest"]

    return score


def rank_candidates(
    employees: Sequence[Employee],
    target_date: date,
    shift_type: ShiftType,
    weekend: bool,
    ledger: WorkloadLedger,
    booking: Mapping[date, Mapping[str, ShiftType]],
    rng: random.Random,
    options: Optional[GenerationOptions] = None,
    weights: Mapping[str, float] = SCORING_WEIGHTS,
    min_rest_hours: float = SCHEDULING_RULES["min_rest_hours"],
    lookback_days: int = SCHEDULING_RULES["lookback_days"],
) -> List[Tuple[Employee, float]]:
    """Score every employee and sort by score descending; ties keep input order."""
    scored = [
        (
            employee,
            score_candidate(
                employee, target_date, shift_type, weekend, ledger, booking, rng,
                options=options, weights=weights,
                min_rest_hours=min_rest_hours, lookback_days=lookback_days,
            ),
        )
        for employee in employees
    ]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
