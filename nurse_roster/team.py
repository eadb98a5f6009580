"""
team.py — Team Risk Aggregator

Rolls individual NursingPatternAnalysis results into a team view:
risk-level distribution, critical employees, most common issue types and
escalation messages for the charge nurse / scheduler.
"""

import logging
from typing import Dict, List, Sequence

import numpy as np

from nurse_roster.models import (
    CommonIssue,
    IssueType,
    NursingPatternAnalysis,
    RiskLevel,
    TeamRiskSummary,
)
from nurse_roster.schedule_config import TEAM_HIGH_RISK_SHARE

logger = logging.getLogger(__name__)


def analyze_team_patterns(analyses: Sequence[NursingPatternAnalysis]) -> TeamRiskSummary:
    distribution: Dict[RiskLevel, int] = {level: 0 for level in RiskLevel}
    for analysis in analyses:
        distribution[analysis.risk_level] += 1

    critical_employees = [a.employee_name for a in analyses if a.risk_level == RiskLevel.CRITICAL]

    # issue type → (occurrences, employees affected) in first-seen order
    histogram: Dict[IssueType, CommonIssue] = {}
    for analysis in analyses:
        for issue in analysis.detected_issues:
            entry = histogram.setdefault(
                issue.issue_type, CommonIssue(issue_type=issue.issue_type, count=0, employees=[])
            )
            entry.count += 1
            if analysis.employee_name not in entry.employees:
                entry.employees.append(analysis.employee_name)
    common_issues = sorted(histogram.values(), key=lambda c: c.count, reverse=True)

    scores = np.array([a.risk_score for a in analyses], dtype=float)
    team_risk_score = round(float(scores.mean())) if scores.size else 0

    total = len(analyses)
    critical = distribution[RiskLevel.CRITICAL]
    high = distribution[RiskLevel.HIGH]

    urgent: List[str] = []
    if critical > 0:
        urgent.append(f"URGENT: {critical} employee(s) at critical risk; reschedule immediately")
    if total > 0 and high / total >= TEAM_HIGH_RISK_SHARE:
        urgent.append(
            f"{high} of {total} employees at high risk; review the team's scheduling policy"
        )

    if urgent:
        logger.warning(f"Team risk escalation: {'; '.join(urgent)}")

    return TeamRiskSummary(
        total_employees=total,
        risk_distribution=distribution,
        critical_employees=critical_employees,
        common_issues=common_issues,
        team_risk_score=team_risk_score,
        urgent_recommendations=urgent,
    )
