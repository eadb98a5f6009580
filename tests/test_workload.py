"""
Tests for the workload ledger (counters, night streaks, chronological updates)
"""

from datetime import date, timedelta

import pytest

from conftest import MONDAY
from nurse_roster.models import Employee, ShiftType
from nurse_roster.workload import WorkloadLedger


@pytest.fixture
def ledger():
    return WorkloadLedger([Employee(id="a", name="Alice", level=1), Employee(id="b", name="Bob", level=2)])


class TestLedgerInit:

    def test_zeroed_entries(self, ledger):
        assert len(ledger) == 2
        entry = ledger.get("a")
        assert entry.total_shifts == 0
        assert entry.night_shifts == 0
        assert entry.weekend_shifts == 0
        assert entry.consecutive_nights == 0
        assert entry.last_shift_date is None
        assert entry.last_shift_type is None

    def test_contains(self, ledger):
        assert "a" in ledger
        assert "zzz" not in ledger


class TestLedgerUpdate:

    def test_day_shift_counts(self, ledger):
        entry = ledger.update("a", ShiftType.DAY, False, MONDAY)
        assert entry.total_shifts == 1
        assert entry.night_shifts == 0
        assert entry.last_shift_date == MONDAY
        assert entry.last_shift_type == ShiftType.DAY

    def test_night_streak_grows_and_resets(self, ledger):
        for i in range(3):
            ledger.update("a", ShiftType.NIGHT, False, MONDAY + timedelta(days=i))
        assert ledger.get("a").consecutive_nights == 3
        assert ledger.get("a").night_shifts == 3

        ledger.update("a", ShiftType.EVENING, False, MONDAY + timedelta(days=3))
        assert ledger.get("a").consecutive_nights == 0
        assert ledger.get("a").night_shifts == 3

        ledger.update("a", ShiftType.NIGHT, False, MONDAY + timedelta(days=4))
        assert ledger.get("a").consecutive_nights == 1

    def test_night_streak_spans_days_off(self, ledger):
        """Night, off, night is still a streak of two recorded nights"""
        ledger.update("a", ShiftType.NIGHT, False, MONDAY)
        ledger.update("a", ShiftType.NIGHT, False, MONDAY + timedelta(days=2))
        assert ledger.get("a").consecutive_nights == 2

    def test_weekend_flag(self, ledger):
        ledger.update("b", ShiftType.DAY, True, date(2026, 3, 7))
        ledger.update("b", ShiftType.DAY, False, date(2026, 3, 9))
        assert ledger.get("b").weekend_shifts == 1
        assert ledger.get("b").total_shifts == 2

    def test_counters_monotonic(self, ledger):
        """total/night/weekend never decrease across a run"""
        previous = (0, 0, 0)
        shifts = [ShiftType.NIGHT, ShiftType.DAY, ShiftType.NIGHT, ShiftType.EVENING, ShiftType.NIGHT]
        for i, shift in enumerate(shifts):
            d = MONDAY + timedelta(days=i)
            e = ledger.update("a", shift, d.weekday() >= 5, d)
            current = (e.total_shifts, e.night_shifts, e.weekend_shifts)
            assert all(c >= p for c, p in zip(current, previous))
            previous = current

    def test_unknown_employee(self, ledger):
        with pytest.raises(KeyError):
            ledger.update("ghost", ShiftType.DAY, False, MONDAY)

    def test_out_of_order_rejected(self, ledger):
        ledger.update("a", ShiftType.DAY, False, MONDAY + timedelta(days=2))
        with pytest.raises(ValueError):
            ledger.update("a", ShiftType.DAY, False, MONDAY)

    def test_snapshot_is_a_copy(self, ledger):
        ledger.update("a", ShiftType.DAY, False, MONDAY)
        snap = ledger.snapshot()
        ledger.update("a", ShiftType.DAY, False, MONDAY + timedelta(days=1))
        assert snap["a"].total_shifts == 1
        assert ledger.total_shifts() == 2
