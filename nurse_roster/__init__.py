"""
Nurse Rostering and Safety-Compliance Engine

Modules:
- models: Employees, coverage requirements, assignments, risk analyses
- workload: Per-employee running counters (single-owner ledger)
- scoring: Candidate scorer (fairness, fatigue, rest, pattern safety)
- engine: Greedy assignment driver, request validation, fairness metrics
- patterns: Rotation-hazard rules and per-employee risk analysis
- team: Team-wide risk roll-up
- constraints: Post-hoc roster audit
- config: CSV / JSON input loaders
"""

from .errors import ValidationError

from .models import (
    CoverageGap,
    CoverageRequirement,
    Employee,
    GenerationOptions,
    LevelRequirement,
    NursingPatternAnalysis,
    PatternIssue,
    RestException,
    RiskLevel,
    ScheduleAssignment,
    ScheduleRequest,
    ShiftEntry,
    ShiftType,
    TeamRiskSummary,
)

from .config import (
    load_roster,
    load_coverage_requirements,
    load_leave_map,
    load_schedule_request,
    get_config,
)

from .workload import WorkloadLedger

from .engine import (
    AssignmentDriver,
    LoggingObserver,
    SchedulingObserver,
    calculate_fairness_metrics,
    generate_schedule,
    validate_request,
)

from .patterns import NursingPatternAnalyzer, build_employee_sequences
from .team import analyze_team_patterns
from .constraints import ConstraintChecker

__all__ = [
    "ValidationError",
    "CoverageGap",
    "CoverageRequirement",
    "Employee",
    "GenerationOptions",
    "LevelRequirement",
    "NursingPatternAnalysis",
    "PatternIssue",
    "RestException",
    "RiskLevel",
    "ScheduleAssignment",
    "ScheduleRequest",
    "ShiftEntry",
    "ShiftType",
    "TeamRiskSummary",
    "load_roster",
    "load_coverage_requirements",
    "load_leave_map",
    "load_schedule_request",
    "get_config",
    "WorkloadLedger",
    "AssignmentDriver",
    "LoggingObserver",
    "SchedulingObserver",
    "calculate_fairness_metrics",
    "generate_schedule",
    "validate_request",
    "NursingPatternAnalyzer",
    "build_employee_sequences",
    "analyze_team_patterns",
    "ConstraintChecker",
]
