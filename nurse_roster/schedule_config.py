"""
schedule_config.py — Shift, Scoring and Pattern-Risk Configuration

SHIFT CLOCK (default hospital three-shift rotation)
───────────────────────────────────────────────────
  day      07:00 → 15:00
  evening  15:00 → 23:00
  night    23:00 → 07:00 (+1 day)
  off / leave: non-working

CANDIDATE SCORING (base 100, additive)
──────────────────────────────────────
  already booked that date         → −1000 (disqualified, still ranked)
  fairness                         −5 × total shifts
  night: 2+ consecutive nights     −80
  night: 1 consecutive night       −20
  night load                       −10 × night shifts
  weekend load (weekend dates)     −15 × weekend shifts
  night → day                      −50
  night with ≥2 nights in lookback −30
  same shift as previous day       +10
  ≥5 consecutive working days      −40
  preferred shift (opt-in)         +30
  rest < min_rest_hours            −100
  tie-break                        ±5 (injected RNG)

PATTERN RISK
────────────
  Impact scores per hazard rule and the score → level thresholds.
"""

from typing import Any, Dict, FrozenSet, List, Tuple

from nurse_roster.models import IssueSeverity, IssueType, RiskLevel, ShiftType

# ---------------------------------------------------------------------------
# Shift definitions
# ---------------------------------------------------------------------------
SHIFT_DEFINITIONS: Dict[ShiftType, Dict[str, Any]] = {
    ShiftType.DAY:     {"start_hour": 7,  "end_hour": 15, "hours": 8, "code": "D"},
    ShiftType.EVENING: {"start_hour": 15, "end_hour": 23, "hours": 8, "code": "E"},
    ShiftType.NIGHT:   {"start_hour": 23, "end_hour": 7,  "hours": 8, "code": "N"},
    ShiftType.OFF:     {"start_hour": 0,  "end_hour": 0,  "hours": 0, "code": "Off"},
    ShiftType.LEAVE:   {"start_hour": 0,  "end_hour": 0,  "hours": 0, "code": "Off"},
}

# Shift types a coverage requirement may ask for, in the order they run in a day
REQUIRABLE_SHIFTS: Tuple[ShiftType, ...] = (ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT)

# ---------------------------------------------------------------------------
# Run limits and audit thresholds
# ---------------------------------------------------------------------------
SCHEDULING_RULES: Dict[str, Any] = {
    "min_rest_hours":         11,
    "lookback_days":          7,
    "max_schedule_days":      92,    # about three months per run
    "max_consecutive_nights": 3,     # audit: a 4th night in a row is flagged
    "consecutive_work_limit": 5,
}

# datetime.weekday(): Monday=0 … Sunday=6
WEEKEND_WEEKDAYS: FrozenSet[int] = frozenset({5, 6})
FRIDAY = 4

# ---------------------------------------------------------------------------
# Candidate scorer weights
# ---------------------------------------------------------------------------
SCORING_WEIGHTS: Dict[str, float] = {
    "base":                      100.0,
    "already_assigned":         -1000.0,
    "per_total_shift":            -5.0,
    "night_after_two_nights":    -80.0,
    "night_after_one_night":     -20.0,
    "per_night_shift":           -10.0,
    "per_weekend_shift":         -15.0,
    "night_to_day":              -50.0,
    "night_with_recent_nights":  -30.0,
    "recent_night_threshold":      2,
    "same_as_previous":           10.0,
    "long_work_streak":          -40.0,
    "preferred_shift":            30.0,
    "insufficient_rest":        -100.0,
    "tie_break_spread":           10.0,   # uniform in [−spread/2, +spread/2]
}

# ---------------------------------------------------------------------------
# Pattern rules
# ---------------------------------------------------------------------------
PATTERN_RULE_IMPACTS: Dict[IssueType, Dict[str, Any]] = {
    IssueType.TRIPLE_SHIFT:          {"severity": IssueSeverity.CRITICAL, "impact": 95.0, "window": 3},
    IssueType.ALTERNATING_CHAOS:     {"severity": IssueSeverity.CRITICAL, "impact": 90.0, "window": 5,
                                      "min_work_days": 3, "min_distinct": 3},
    IssueType.EXCESSIVE_NIGHTS:      {"severity": IssueSeverity.DANGER,   "impact": 70.0,
                                      "streak_limit": 4, "per_extra_night": 5.0},
    IssueType.DOUBLE_WITHOUT_REST:   {"severity": IssueSeverity.DANGER,   "impact": 75.0, "window": 4},
    IssueType.WEEKEND_HEAVY:         {"severity": IssueSeverity.WARNING,  "impact": 60.0,
                                      "friday_night_limit": 2},
    IssueType.EXCESSIVE_NIGHT_RATIO: {"severity": IssueSeverity.WARNING,  "impact": 50.0,
                                      "ratio_limit": 0.4, "ratio_multiplier": 50.0},
}

# Ordered (shift on day N, shift on day N+1) pairs that count as a "double"
DOUBLE_SHIFT_PAIRS: Tuple[Tuple[ShiftType, ShiftType], ...] = (
    (ShiftType.DAY, ShiftType.EVENING),
    (ShiftType.EVENING, ShiftType.NIGHT),
)

# Composite: top impact weight, remainder-mean weight
COMPOSITE_WEIGHTS: Dict[str, float] = {"top": 0.7, "rest": 0.3}

# Highest threshold first
RISK_LEVEL_THRESHOLDS: List[Tuple[float, RiskLevel]] = [
    (80.0, RiskLevel.CRITICAL),
    (60.0, RiskLevel.HIGH),
    (30.0, RiskLevel.MEDIUM),
]

# Team escalation: share of high-risk employees that triggers a policy review
TEAM_HIGH_RISK_SHARE = 0.3


def shift_code(shift_type: ShiftType) -> str:
    return SHIFT_DEFINITIONS[shift_type]["code"]


def get_config() -> Dict[str, Any]:
    return {
        "shift_definitions":     {k.value: dict(v) for k, v in SHIFT_DEFINITIONS.items()},
        "scheduling_rules":      SCHEDULING_RULES.copy(),
        "scoring_weights":       SCORING_WEIGHTS.copy(),
        "pattern_rule_impacts":  {k.value: dict(v) for k, v in PATTERN_RULE_IMPACTS.items()},
        "risk_level_thresholds": [(t, lvl.value) for t, lvl in RISK_LEVEL_THRESHOLDS],
    }
