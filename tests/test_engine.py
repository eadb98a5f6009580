"""
Tests for the assignment driver (coverage, fairness, determinism, validation, observer events)
"""

import random
from collections import Counter
from datetime import date, timedelta

import pytest

from conftest import MONDAY, FixedRandom
from nurse_roster.engine import (
    AssignmentDriver,
    SchedulingObserver,
    calculate_fairness_metrics,
    generate_schedule,
    get_date_range,
    validate_request,
)
from nurse_roster.errors import ValidationError
from nurse_roster.models import (
    CoverageRequirement,
    Employee,
    GenerationOptions,
    LevelRequirement,
    ScheduleAssignment,
    ScheduleRequest,
    ShiftType,
)


def _daily(start, days, shift, levels):
    """One requirement per day for `shift` with {level: count}."""
    return [
        CoverageRequirement(
            date=start + timedelta(days=i),
            shift_type=shift,
            level_requirements=tuple(LevelRequirement(lv, c) for lv, c in levels.items()),
        )
        for i in range(days)
    ]


def _request(requirements, days=7, options=None):
    return ScheduleRequest(
        start_date=MONDAY,
        end_date=MONDAY + timedelta(days=days - 1),
        coverage_requirements=requirements,
        generation_options=options or GenerationOptions(),
    )


class RecordingObserver(SchedulingObserver):
    def __init__(self):
        self.events = []

    def on_run_started(self, request, employees):
        self.events.append(("started", len(employees)))

    def on_assignment(self, assignment):
        self.events.append(("assignment", assignment))

    def on_under_coverage(self, gap):
        self.events.append(("gap", gap))

    def on_mentorship_gap(self, assignment):
        self.events.append(("mentorship", assignment))

    def on_rest_exception(self, exception):
        self.events.append(("rest", exception))

    def on_run_completed(self, assignments, gaps):
        self.events.append(("completed", len(assignments), len(gaps)))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


def _assert_no_double_booking(assignments):
    seen = set()
    for a in assignments:
        for e in a.employees:
            key = (a.date, e.id)
            assert key not in seen, f"{e.id} double-booked on {a.date}"
            seen.add(key)


class TestOneWeekDayShift:
    """3 level-1 employees, one day shift per day for a week"""

    def test_fills_every_day(self, three_level1):
        request = _request(_daily(MONDAY, 7, ShiftType.DAY, {1: 1}))
        driver = AssignmentDriver(rng=FixedRandom())
        assignments = driver.run(request, three_level1)

        assert len(assignments) == 7
        assert all(len(a.employees) == 1 for a in assignments)
        assert driver.ledger.total_shifts() == 7
        assert driver.coverage_gaps == []
        assert driver.rest_exceptions == []
        _assert_no_double_booking(assignments)

    def test_load_is_spread(self, three_level1):
        request = _request(_daily(MONDAY, 7, ShiftType.DAY, {1: 1}))
        assignments = generate_schedule(request, three_level1, rng=FixedRandom())
        counts = Counter(e.id for a in assignments for e in a.employees)
        assert sum(counts.values()) == 7
        assert max(counts.values()) <= 3

    def test_fairness_off_lets_one_employee_run_long(self, three_level1):
        """Without the fairness term the same-shift bonus keeps one employee on until the streak cap"""
        options = GenerationOptions(enforce_fairness=False)
        request = _request(_daily(MONDAY, 5, ShiftType.DAY, {1: 1}), days=5, options=options)
        assignments = generate_schedule(request, three_level1, rng=FixedRandom())
        assert [a.employee_ids for a in assignments] == [["a"]] * 5


class TestCoverage:

    def test_missing_level_emits_nothing(self, three_level1):
        """No level-3 staff at all: no assignment, a gap, no exception"""
        observer = RecordingObserver()
        request = _request(_daily(MONDAY, 1, ShiftType.NIGHT, {3: 1}), days=1)
        driver = AssignmentDriver(rng=FixedRandom(), observer=observer)
        assignments = driver.run(request, three_level1)

        assert assignments == []
        assert len(driver.coverage_gaps) == 1
        gap = driver.coverage_gaps[0]
        assert (gap.level, gap.required, gap.assigned, gap.missing) == (3, 1, 0, 1)
        assert len(observer.of("gap")) == 1
        assert observer.events[-1] == ("completed", 0, 1)

    def test_partial_fill_keeps_what_was_found(self, mixed_roster):
        request = _request(_daily(MONDAY, 1, ShiftType.DAY, {1: 1, 2: 1}), days=1)
        driver = AssignmentDriver(rng=FixedRandom())
        assignments = driver.run(request, mixed_roster)
        assert len(assignments) == 1
        assert [e.level for e in assignments[0].employees] == [1]
        assert [g.level for g in driver.coverage_gaps] == [2]

    def test_zero_count_requirement_ignored(self, three_level1):
        request = _request(_daily(MONDAY, 1, ShiftType.DAY, {1: 0}), days=1)
        driver = AssignmentDriver(rng=FixedRandom())
        assert driver.run(request, three_level1) == []
        assert driver.coverage_gaps == []

    def test_three_shifts_a_day_never_double_books(self, three_level1):
        reqs = []
        for shift in (ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT):
            reqs.extend(_daily(MONDAY, 14, shift, {1: 1}))
        reqs.sort(key=lambda r: r.date)
        request = _request(reqs, days=14)
        assignments = generate_schedule(request, three_level1, seed=11)
        _assert_no_double_booking(assignments)

    def test_unsafe_candidates_left_unassigned(self):
        """A lone nurse coming off a night is not forced onto the next day shift"""
        solo = [Employee(id="a", name="Alice", level=1)]
        reqs = [
            CoverageRequirement(MONDAY, ShiftType.NIGHT, (LevelRequirement(1, 1),)),
            CoverageRequirement(MONDAY + timedelta(days=1), ShiftType.DAY, (LevelRequirement(1, 1),)),
        ]
        driver = AssignmentDriver(rng=FixedRandom())
        assignments = driver.run(_request(reqs, days=2), solo)
        assert [a.shift_type for a in assignments] == [ShiftType.NIGHT]
        assert len(driver.coverage_gaps) == 1
        assert driver.rest_exceptions == []

    def test_short_rest_pick_is_recorded(self):
        """A preference boost can outweigh the rest penalty; the pick is kept and reported"""
        solo = [Employee(id="a", name="Alice", level=1, preferred_shifts=("day",))]
        reqs = [
            CoverageRequirement(MONDAY, ShiftType.EVENING, (LevelRequirement(1, 1),)),
            CoverageRequirement(MONDAY + timedelta(days=1), ShiftType.DAY, (LevelRequirement(1, 1),)),
        ]
        options = GenerationOptions(prioritize_preferences=True)
        observer = RecordingObserver()
        driver = AssignmentDriver(rng=FixedRandom(), observer=observer)
        assignments = driver.run(_request(reqs, days=2, options=options), solo)

        assert [a.shift_type for a in assignments] == [ShiftType.EVENING, ShiftType.DAY]
        assert len(driver.rest_exceptions) == 1
        exc = driver.rest_exceptions[0]
        assert exc.employee_id == "a"
        assert (exc.date, exc.shift_type) == (MONDAY + timedelta(days=1), ShiftType.DAY)
        assert (exc.previous_date, exc.previous_shift) == (MONDAY, ShiftType.EVENING)
        assert exc.rest_hours == 8
        assert [e[1] for e in observer.of("rest")] == driver.rest_exceptions

    def test_rest_exceptions_reset_between_runs(self):
        solo = [Employee(id="a", name="Alice", level=1, preferred_shifts=("day",))]
        reqs = [
            CoverageRequirement(MONDAY, ShiftType.EVENING, (LevelRequirement(1, 1),)),
            CoverageRequirement(MONDAY + timedelta(days=1), ShiftType.DAY, (LevelRequirement(1, 1),)),
        ]
        options = GenerationOptions(prioritize_preferences=True)
        driver = AssignmentDriver(rng=FixedRandom())
        driver.run(_request(reqs, days=2, options=options), solo)
        driver.run(_request(reqs[:1], days=1, options=options), solo)
        assert driver.rest_exceptions == []

    def test_leave_excludes_employee(self, three_level1):
        request = _request(_daily(MONDAY, 1, ShiftType.DAY, {1: 2}), days=1)
        assignments = generate_schedule(
            request, three_level1, rng=FixedRandom(), leave_map={MONDAY: ["a"]}
        )
        assert assignments[0].employee_ids == ["b", "c"]

    def test_requirements_outside_range_ignored(self, three_level1):
        reqs = _daily(MONDAY - timedelta(days=1), 3, ShiftType.DAY, {1: 1})
        request = _request(reqs, days=1)
        assignments = generate_schedule(request, three_level1, rng=FixedRandom())
        assert [a.date for a in assignments] == [MONDAY]


class TestOptions:

    def test_preferences_change_the_pick(self):
        roster = [
            Employee(id="a", name="Alice", level=2),
            Employee(id="b", name="Bob", level=2, preferred_shifts=("night",)),
        ]
        reqs = _daily(MONDAY, 1, ShiftType.NIGHT, {2: 1})

        plain = generate_schedule(_request(reqs, days=1), roster, rng=FixedRandom())
        assert plain[0].employee_ids == ["a"]

        options = GenerationOptions(prioritize_preferences=True)
        preferred = generate_schedule(_request(reqs, days=1, options=options), roster, rng=FixedRandom())
        assert preferred[0].employee_ids == ["b"]

    def test_mentorship_gap_reported(self, mixed_roster):
        observer = RecordingObserver()
        options = GenerationOptions(enforce_mentorship_pairing=True)
        reqs = _daily(MONDAY, 1, ShiftType.DAY, {1: 1}) + _daily(MONDAY, 1, ShiftType.EVENING, {1: 1, 3: 1})
        generate_schedule(_request(reqs, days=1, options=options), mixed_roster,
                          rng=FixedRandom(), observer=observer)
        flagged = observer.of("mentorship")
        assert len(flagged) == 1
        assert flagged[0][1].shift_type == ShiftType.DAY

    def test_mentorship_off_by_default(self, mixed_roster):
        observer = RecordingObserver()
        reqs = _daily(MONDAY, 1, ShiftType.DAY, {1: 1})
        generate_schedule(_request(reqs, days=1), mixed_roster, rng=FixedRandom(), observer=observer)
        assert observer.of("mentorship") == []


class TestDeterminism:

    def test_same_seed_same_roster(self, mixed_roster):
        reqs = []
        for shift in (ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT):
            reqs.extend(_daily(MONDAY, 21, shift, {1: 1, 3: 1}))
        reqs.sort(key=lambda r: r.date)
        request = _request(reqs, days=21)

        first = generate_schedule(request, mixed_roster, rng=random.Random(42))
        second = generate_schedule(request, mixed_roster, rng=random.Random(42))
        assert first == second

    def test_seed_argument_matches_rng(self, three_level1):
        request = _request(_daily(MONDAY, 7, ShiftType.EVENING, {1: 1}))
        assert generate_schedule(request, three_level1, seed=5) == generate_schedule(
            request, three_level1, rng=random.Random(5)
        )

    def test_rerun_resets_state(self, three_level1):
        request = _request(_daily(MONDAY, 7, ShiftType.DAY, {1: 1}))
        driver = AssignmentDriver(rng=FixedRandom())
        first = driver.run(request, three_level1)
        second = driver.run(request, three_level1)
        assert first == second
        assert driver.ledger.total_shifts() == 7


class TestValidation:

    def test_start_after_end(self, three_level1):
        request = ScheduleRequest(MONDAY, MONDAY - timedelta(days=1), [])
        with pytest.raises(ValidationError):
            validate_request(request, three_level1)

    def test_range_too_long(self, three_level1):
        request = ScheduleRequest(MONDAY, MONDAY + timedelta(days=92), [])
        with pytest.raises(ValidationError, match="93 days"):
            validate_request(request, three_level1)

    def test_empty_roster(self):
        request = _request([])
        with pytest.raises(ValidationError, match="empty"):
            AssignmentDriver(rng=FixedRandom()).run(request, [])

    def test_duplicate_ids(self):
        roster = [Employee("a", "Alice", 1), Employee("a", "Alicia", 1)]
        with pytest.raises(ValidationError, match="Duplicate"):
            validate_request(_request([]), roster)

    def test_unknown_shift_type(self, three_level1):
        req = CoverageRequirement(MONDAY, "swing", (LevelRequirement(1, 1),))
        with pytest.raises(ValidationError, match="swing"):
            validate_request(_request([req]), three_level1)

    def test_off_is_not_requirable(self, three_level1):
        req = CoverageRequirement(MONDAY, ShiftType.OFF, (LevelRequirement(1, 1),))
        with pytest.raises(ValidationError):
            validate_request(_request([req]), three_level1)

    def test_negative_count(self, three_level1):
        req = CoverageRequirement(MONDAY, ShiftType.DAY, (LevelRequirement(1, -1),))
        with pytest.raises(ValidationError, match="Negative"):
            validate_request(_request([req]), three_level1)

    def test_string_shift_coerced(self, three_level1):
        req = CoverageRequirement(MONDAY, "Night", (LevelRequirement(1, 1),))
        assert req.shift_type == ShiftType.NIGHT
        validate_request(_request([req]), three_level1)

    def test_failed_validation_leaves_no_state(self, three_level1):
        driver = AssignmentDriver(rng=FixedRandom())
        with pytest.raises(ValidationError):
            driver.run(ScheduleRequest(MONDAY, MONDAY - timedelta(days=1), []), three_level1)
        assert driver.ledger is None
        assert driver.coverage_gaps == []


class TestDateRange:

    def test_inclusive(self):
        days = get_date_range(MONDAY, MONDAY + timedelta(days=2))
        assert days == [MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)]


class TestFairnessMetrics:

    def test_metrics_shape(self, three_level1):
        a, b, c = three_level1
        assignments = [
            ScheduleAssignment(MONDAY, ShiftType.DAY, (a,)),
            ScheduleAssignment(MONDAY, ShiftType.NIGHT, (b,)),
            ScheduleAssignment(MONDAY + timedelta(days=1), ShiftType.DAY, (a,)),
            ScheduleAssignment(date(2026, 3, 7), ShiftType.EVENING, (c,)),
        ]
        metrics = calculate_fairness_metrics(assignments, three_level1)
        assert metrics["counts"] == {"a": 2, "b": 1, "c": 1}
        assert metrics["night_counts"]["b"] == 1
        assert metrics["weekend_counts"]["c"] == 1
        assert metrics["night_distribution"] == "1/4"
        assert metrics["min"] == 1
        assert metrics["max"] == 2
        assert metrics["mean"] == pytest.approx(4 / 3)
        assert 0 <= metrics["fairness_score"] <= 100
        assert metrics["unfilled"] == 0

    def test_empty(self, three_level1):
        metrics = calculate_fairness_metrics([], three_level1)
        assert metrics["mean"] == 0
        assert metrics["cv"] == 0
        assert metrics["fairness_score"] == 100
