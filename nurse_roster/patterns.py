"""
patterns.py — Pattern Risk Analyzer

Audits one employee's finalized, chronological shift sequence against the
rotation hazards that matter in 24/7 shift work:

  Rule                         Severity   Impact
  ─────────────────────────    ────────   ──────────────────────────
  Triple-shift rotation        critical   95
  Alternating chaos            critical   90
  Excessive consecutive nights danger     70 + 5 × (streak − 4)
  Double without rest          danger     75
  Weekend-heavy (Fri nights)   warning    60
  Excessive night ratio        warning    50 + (ratio − 0.4) × 50

Composite risk: 0 with no issues, the single impact with one issue, otherwise
0.7 × top impact + 0.3 × mean(remaining impacts), clamped to [0, 100].

Rules are independent strategy objects; pass a custom list to
NursingPatternAnalyzer(rules=...) to add hazards without touching scoring.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from nurse_roster.models import (
    Employee,
    IssueType,
    NursingPatternAnalysis,
    PatternIssue,
    RiskLevel,
    ScheduleAssignment,
    ShiftEntry,
    ShiftType,
)
from nurse_roster.schedule_config import (
    COMPOSITE_WEIGHTS,
    DOUBLE_SHIFT_PAIRS,
    FRIDAY,
    PATTERN_RULE_IMPACTS,
    RISK_LEVEL_THRESHOLDS,
    shift_code,
)

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Sequence normalization
# ---------------------------------------------------------------------------

def normalize_sequence(entries: Iterable[ShiftEntry]) -> List[ShiftEntry]:
    """
    Sort by date and fill calendar gaps with OFF so every window is a run of
    adjacent days. If a date appears twice the later entry wins.
    """
    by_date: Dict[date, ShiftEntry] = {}
    for entry in entries:
        if entry.date in by_date:
            logger.warning(f"Duplicate entry for {entry.date.isoformat()}; keeping the later one")
        by_date[entry.date] = entry
    if not by_date:
        return []

    first, last = min(by_date), max(by_date)
    sequence: List[ShiftEntry] = []
    d = first
    while d <= last:
        sequence.append(by_date.get(d) or ShiftEntry(date=d, shift_type=ShiftType.OFF))
        d += timedelta(days=1)
    return sequence


def pattern_codes(sequence: Sequence[ShiftEntry]) -> List[str]:
    """['D', 'E', 'N', 'Off', …] for display."""
    return [shift_code(e.effective_shift) for e in sequence]


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class PatternRule:
    """Base hazard rule. Subclasses set issue_type and implement detect()."""

    issue_type: IssueType

    def __init__(self, **overrides):
        self.params = {**PATTERN_RULE_IMPACTS[self.issue_type], **overrides}

    def detect(self, sequence: Sequence[ShiftEntry]) -> List[PatternIssue]:
        raise NotImplementedError

    def _issue(self, description: str, affected: Iterable[date], impact: Optional[float] = None) -> PatternIssue:
        return PatternIssue(
            issue_type=self.issue_type,
            severity=self.params["severity"],
            description=description,
            affected_dates=list(affected),
            impact_score=_clamp(self.params["impact"] if impact is None else impact),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class TripleShiftRotationRule(PatternRule):
    """Day, evening and night all worked within one 3-day window, in any order."""

    issue_type = IssueType.TRIPLE_SHIFT

    def detect(self, sequence):
        issues = []
        size = self.params["window"]
        for i in range(len(sequence) - size + 1):
            window = sequence[i:i + size]
            shifts = [e.effective_shift for e in window]
            if all(e.is_working for e in window) and set(shifts) == {
                ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT
            }:
                issues.append(self._issue(
                    f"Triple-shift rotation {'-'.join(s.value for s in shifts)} "
                    f"(circadian rhythm disruption)",
                    [e.date for e in window],
                ))
        return issues


class AlternatingChaosRule(PatternRule):
    """5-day window, ≥3 working days, ≥3 distinct shifts, no repeated shift between working days."""

    issue_type = IssueType.ALTERNATING_CHAOS

    def detect(self, sequence):
        issues = []
        size = self.params["window"]
        for i in range(len(sequence) - size + 1):
            window = sequence[i:i + size]
            worked = [e.effective_shift for e in window if e.is_working]
            if len(worked) < self.params["min_work_days"]:
                continue
            if len(set(worked)) < self.params["min_distinct"]:
                continue
            if any(a == b for a, b in zip(worked, worked[1:])):
                continue
            issues.append(self._issue(
                f"Alternating pattern {'-'.join(s.value for s in worked)} "
                f"(no adaptation possible)",
                [e.date for e in window],
            ))
        return issues


class ExcessiveConsecutiveNightsRule(PatternRule):
    """Running night streak; one issue for every night at or past the limit."""

    issue_type = IssueType.EXCESSIVE_NIGHTS

    def detect(self, sequence):
        issues = []
        limit = self.params["streak_limit"]
        streak: List[date] = []
        for entry in sequence:
            if entry.effective_shift != ShiftType.NIGHT:
                streak = []
                continue
            streak.append(entry.date)
            if len(streak) >= limit:
                issues.append(self._issue(
                    f"{len(streak)} consecutive night shifts (recommended maximum {limit - 1})",
                    streak,
                    impact=self.params["impact"] + self.params["per_extra_night"] * (len(streak) - limit),
                ))
        return issues


class DoubleWithoutRestRule(PatternRule):
    """
    (day, evening) or (evening, night) on consecutive days, a single day off,
    then straight back to work. Only the earlier→later orderings count.
    """

    issue_type = IssueType.DOUBLE_WITHOUT_REST

    def detect(self, sequence):
        issues = []
        size = self.params["window"]
        for i in range(len(sequence) - size + 1):
            window = sequence[i:i + size]
            first, second, rest, back = (e.effective_shift for e in window)
            if (first, second) not in DOUBLE_SHIFT_PAIRS:
                continue
            if rest == ShiftType.OFF and back != ShiftType.OFF:
                issues.append(self._issue(
                    "Back at work after a double with only one day off (recommended: at least 2)",
                    [e.date for e in window],
                ))
        return issues


class WeekendHeavyRule(PatternRule):
    """Repeated Friday nights across the sequence."""

    issue_type = IssueType.WEEKEND_HEAVY

    def detect(self, sequence):
        fridays = [
            e.date for e in sequence
            if e.effective_shift == ShiftType.NIGHT and e.date.weekday() == FRIDAY
        ]
        if len(fridays) < self.params["friday_night_limit"]:
            return []
        return [self._issue(
            f"{len(fridays)} Friday night shifts (weekend social fatigue)",
            fridays,
        )]


class ExcessiveNightRatioRule(PatternRule):
    """Night shifts as a share of working days."""

    issue_type = IssueType.EXCESSIVE_NIGHT_RATIO

    def detect(self, sequence):
        worked = [e for e in sequence if e.is_working]
        if not worked:
            return []
        nights = [e.date for e in worked if e.effective_shift == ShiftType.NIGHT]
        ratio = len(nights) / len(worked)
        limit = self.params["ratio_limit"]
        if ratio <= limit:
            return []
        return [self._issue(
            f"Night shifts are {round(ratio * 100)}% of working days (recommended: 30% or less)",
            nights,
            impact=self.params["impact"] + (ratio - limit) * self.params["ratio_multiplier"],
        )]


DEFAULT_RULES: List[PatternRule] = [
    TripleShiftRotationRule(),
    AlternatingChaosRule(),
    ExcessiveConsecutiveNightsRule(),
    DoubleWithoutRestRule(),
    WeekendHeavyRule(),
    ExcessiveNightRatioRule(),
]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def calculate_risk_score(issues: Sequence[PatternIssue]) -> float:
    if not issues:
        return 0.0
    impacts = sorted((i.impact_score for i in issues), reverse=True)
    if len(impacts) == 1:
        return round(_clamp(impacts[0]), 1)
    rest = impacts[1:]
    score = COMPOSITE_WEIGHTS["top"] * impacts[0] + COMPOSITE_WEIGHTS["rest"] * (sum(rest) / len(rest))
    return round(_clamp(score), 1)


def determine_risk_level(risk_score: float) -> RiskLevel:
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if risk_score >= threshold:
            return level
    return RiskLevel.LOW


def generate_recommendations(issues: Sequence[PatternIssue], risk_level: RiskLevel) -> List[str]:
    found = {i.issue_type for i in issues}
    recommendations: List[str] = []

    if IssueType.TRIPLE_SHIFT in found:
        recommendations.append(
            "Restructure the rotation: replace day-evening-night runs with night-off-off-day"
        )
        recommendations.append("Keep the same shift for 2-3 days in a row, then give full rest")

    if IssueType.ALTERNATING_CHAOS in found:
        recommendations.append("Replace the alternating pattern with a regular forward rotation")
        recommendations.append("Take the employee's preferred rotation length (short/long) into account")

    if IssueType.EXCESSIVE_NIGHTS in found:
        recommendations.append("Cap consecutive night shifts at 3")
        recommendations.append("Guarantee at least 2 rest days after a night block")

    if IssueType.EXCESSIVE_NIGHT_RATIO in found:
        recommendations.append("Redistribute night shifts across the team")

    if IssueType.DOUBLE_WITHOUT_REST in found:
        recommendations.append("Give at least 2 rest days after a double")

    if risk_level == RiskLevel.CRITICAL:
        recommendations.append("Reschedule immediately: health and safety risk")
    elif risk_level == RiskLevel.HIGH:
        recommendations.append("Fix as a priority in the next scheduling cycle")

    return recommendations


# ---------------------------------------------------------------------------
# Sequence builder
# ---------------------------------------------------------------------------

def build_employee_sequences(
    assignments: Iterable[ScheduleAssignment],
    employees: Iterable[Employee],
    start_date: date,
    end_date: date,
    leave_map: Optional[Mapping[date, Iterable[str]]] = None,
) -> Dict[str, List[ShiftEntry]]:
    """
    Expand a finished assignment list into one calendar-contiguous sequence per
    employee over [start_date, end_date]. Unassigned days are OFF; leave-map
    days carry leave_type="leave".
    """
    worked: Dict[str, Dict[date, ShiftType]] = defaultdict(dict)
    for assignment in assignments:
        for employee in assignment.employees:
            worked[employee.id][assignment.date] = assignment.shift_type

    on_leave: Dict[str, set] = defaultdict(set)
    for d, ids in (leave_map or {}).items():
        for employee_id in ids:
            on_leave[employee_id].add(d)

    n_days = (end_date - start_date).days + 1
    dates = [start_date + timedelta(days=i) for i in range(n_days)]

    sequences: Dict[str, List[ShiftEntry]] = {}
    for employee in employees:
        days = worked.get(employee.id, {})
        leave_days = on_leave.get(employee.id, set())
        sequences[employee.id] = [
            ShiftEntry(
                date=d,
                shift_type=days.get(d, ShiftType.OFF),
                leave_type="leave" if d in leave_days else None,
            )
            for d in dates
        ]
    return sequences


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class NursingPatternAnalyzer:
    """Runs every rule over a complete sequence and aggregates the result."""

    def __init__(self, rules: Optional[Sequence[PatternRule]] = None):
        self.rules: List[PatternRule] = list(DEFAULT_RULES if rules is None else rules)

    def detect_issues(self, sequence: Sequence[ShiftEntry]) -> List[PatternIssue]:
        issues: List[PatternIssue] = []
        for rule in self.rules:
            issues.extend(rule.detect(sequence))
        return issues

    def analyze_employee_pattern(
        self,
        employee_id: str,
        employee_name: str,
        entries: Iterable[ShiftEntry],
        analysis_date: Optional[date] = None,
    ) -> NursingPatternAnalysis:
        sequence = normalize_sequence(entries)
        issues = self.detect_issues(sequence)
        risk_score = calculate_risk_score(issues)
        risk_level = determine_risk_level(risk_score)

        if issues:
            logger.debug(
                f"{employee_name}: {len(issues)} pattern issues, "
                f"risk {risk_score} ({risk_level.value})"
            )

        return NursingPatternAnalysis(
            employee_id=employee_id,
            employee_name=employee_name,
            pattern_sequence=pattern_codes(sequence),
            risk_score=risk_score,
            risk_level=risk_level,
            detected_issues=issues,
            recommendations=generate_recommendations(issues, risk_level),
            analysis_date=analysis_date,
        )

    def analyze_schedule(
        self,
        assignments: Sequence[ScheduleAssignment],
        employees: Sequence[Employee],
        start_date: date,
        end_date: date,
        leave_map: Optional[Mapping[date, Iterable[str]]] = None,
        analysis_date: Optional[date] = None,
    ) -> List[NursingPatternAnalysis]:
        """Analyze every employee once the full assignment list is known."""
        sequences = build_employee_sequences(assignments, employees, start_date, end_date, leave_map)
        return [
            self.analyze_employee_pattern(e.id, e.name, sequences[e.id], analysis_date)
            for e in employees
        ]
