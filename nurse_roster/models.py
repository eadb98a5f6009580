"""
models.py — Data model for the rostering and safety-compliance engine

Inputs (supplied by the caller, read-only during a run):
  - Employee:            id, name, skill level (ordinal tier), team
  - CoverageRequirement: date + shift type → {level: headcount}
  - ScheduleRequest:     date range, team ids, requirements, generation options

Outputs:
  - ScheduleAssignment:     date, shift type, ordered employees (immutable)
  - NursingPatternAnalysis: per-employee risk score / level / issues
  - TeamRiskSummary:        roll-up of analyses for one team
  - CoverageGap:            a level bucket that finished short of its headcount
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ShiftType(str, Enum):
    DAY = "day"
    EVENING = "evening"
    NIGHT = "night"
    OFF = "off"
    LEAVE = "leave"

    @property
    def is_working(self) -> bool:
        return self in WORKING_SHIFTS


WORKING_SHIFTS = (ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT)


class IssueType(str, Enum):
    TRIPLE_SHIFT = "consecutive_triple_shift"
    ALTERNATING_CHAOS = "alternating_chaos"
    EXCESSIVE_NIGHTS = "excessive_nights"
    DOUBLE_WITHOUT_REST = "double_without_rest"
    WEEKEND_HEAVY = "weekend_heavy"
    EXCESSIVE_NIGHT_RATIO = "excessive_night_ratio"


class IssueSeverity(str, Enum):
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def parse_shift_type(value: Any) -> ShiftType:
    """Coerce a raw value ('Night', ShiftType.NIGHT, ' day ') to ShiftType. Raises ValueError."""
    if isinstance(value, ShiftType):
        return value
    return ShiftType(str(value).strip().lower())


# ---------------------------------------------------------------------------
# Scheduling inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Employee:
    id: str
    name: str
    level: int
    team: str = ""
    preferred_shifts: Tuple[ShiftType, ...] = ()

    def __post_init__(self):
        object.__setattr__(
            self, "preferred_shifts", tuple(parse_shift_type(s) for s in self.preferred_shifts)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "level": self.level, "team": self.team}


@dataclass(frozen=True)
class LevelRequirement:
    level: int
    count: int


@dataclass(frozen=True)
class CoverageRequirement:
    date: date
    shift_type: ShiftType
    level_requirements: Tuple[LevelRequirement, ...]

    def __post_init__(self):
        # Known names are coerced; unknown ones are left for validate_request to reject
        if not isinstance(self.shift_type, ShiftType):
            try:
                object.__setattr__(self, "shift_type", parse_shift_type(self.shift_type))
            except ValueError:
                pass
        object.__setattr__(self, "level_requirements", tuple(self.level_requirements))

    @property
    def total_required(self) -> int:
        return sum(r.count for r in self.level_requirements)


@dataclass(frozen=True)
class GenerationOptions:
    enforce_fairness: bool = True
    enforce_mentorship_pairing: bool = False
    prioritize_preferences: bool = False


@dataclass
class ScheduleRequest:
    start_date: date
    end_date: date
    coverage_requirements: List[CoverageRequirement]
    team_ids: List[str] = field(default_factory=list)
    generation_options: GenerationOptions = field(default_factory=GenerationOptions)


# ---------------------------------------------------------------------------
# Scheduling outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScheduleAssignment:
    date: date
    shift_type: ShiftType
    employees: Tuple[Employee, ...]

    @property
    def employee_ids(self) -> List[str]:
        return [e.id for e in self.employees]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "shift_type": self.shift_type.value,
            "employees": [e.to_dict() for e in self.employees],
        }


@dataclass(frozen=True)
class CoverageGap:
    date: date
    shift_type: ShiftType
    level: int
    required: int
    assigned: int

    @property
    def missing(self) -> int:
        return self.required - self.assigned

    def __str__(self) -> str:
        return (
            f"{self.date.isoformat()} {self.shift_type.value} level {self.level}: "
            f"{self.assigned}/{self.required} filled"
        )


@dataclass(frozen=True)
class RestException:
    """A pick committed with less than the minimum rest since the employee's previous shift."""
    date: date
    shift_type: ShiftType
    employee_id: str
    previous_date: date
    previous_shift: ShiftType
    rest_hours: float

    def __str__(self) -> str:
        return (
            f"{self.date.isoformat()} {self.shift_type.value} {self.employee_id}: "
            f"{self.rest_hours:g}h rest after {self.previous_shift.value} "
            f"on {self.previous_date.isoformat()}"
        )


# ---------------------------------------------------------------------------
# Pattern analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ShiftEntry:
    """One calendar day of an employee's realized sequence."""
    date: date
    shift_type: ShiftType
    leave_type: Optional[str] = None

    @property
    def effective_shift(self) -> ShiftType:
        # A leave day counts as off for rotation purposes regardless of shift_type
        if self.leave_type or self.shift_type == ShiftType.LEAVE:
            return ShiftType.OFF
        return self.shift_type

    @property
    def is_working(self) -> bool:
        return self.effective_shift.is_working


@dataclass
class PatternIssue:
    issue_type: IssueType
    severity: IssueSeverity
    description: str
    affected_dates: List[date]
    impact_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_type": self.issue_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "affected_dates": [d.isoformat() for d in self.affected_dates],
            "impact_score": round(self.impact_score, 1),
        }


@dataclass
class NursingPatternAnalysis:
    employee_id: str
    employee_name: str
    pattern_sequence: List[str]
    risk_score: float
    risk_level: RiskLevel
    detected_issues: List[PatternIssue]
    recommendations: List[str]
    analysis_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "pattern_sequence": list(self.pattern_sequence),
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "detected_issues": [i.to_dict() for i in self.detected_issues],
            "recommendations": list(self.recommendations),
            "analysis_date": self.analysis_date.isoformat() if self.analysis_date else None,
        }


@dataclass
class CommonIssue:
    issue_type: IssueType
    count: int
    employees: List[str]


@dataclass
class TeamRiskSummary:
    total_employees: int
    risk_distribution: Dict[RiskLevel, int]
    critical_employees: List[str]
    common_issues: List[CommonIssue]
    team_risk_score: float
    urgent_recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_employees": self.total_employees,
            "risk_distribution": {k.value: v for k, v in self.risk_distribution.items()},
            "critical_employees": list(self.critical_employees),
            "common_issues": [
                {"issue_type": c.issue_type.value, "count": c.count, "employees": list(c.employees)}
                for c in self.common_issues
            ],
            "team_risk_score": self.team_risk_score,
            "urgent_recommendations": list(self.urgent_recommendations),
        }
