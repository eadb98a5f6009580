"""
dry_run.py — Roster generation + safety audit from CSV inputs

Full orchestration:
  1. Load roster, coverage requirements, leave map
  2. Validate inputs (request preconditions, roster structure)
  3. Generate the roster (seeded greedy driver)
  4. Audit constraints (hard + soft) and compute fairness metrics
  5. Analyze per-employee rotation risk and roll up the team summary
  6. Export assignments JSON, risk JSON, violations report
  7. Print summary to console

Usage:
  python -m nurse_roster.dry_run --start 2026-03-02 --end 2026-03-29
  python -m nurse_roster.dry_run --start 2026-03-02 --end 2026-03-29 --seed 7 --mentorship
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from nurse_roster.config import (
    PROJECT_ROOT,
    filter_team,
    load_coverage_requirements,
    load_leave_map,
    load_roster,
)
from nurse_roster.constraints import ConstraintChecker
from nurse_roster.engine import AssignmentDriver, calculate_fairness_metrics
from nurse_roster.errors import ValidationError
from nurse_roster.models import GenerationOptions, RiskLevel, ScheduleRequest
from nurse_roster.patterns import NursingPatternAnalyzer
from nurse_roster.team import analyze_team_patterns

logger = logging.getLogger(__name__)

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------

def run_dry_run(
    start_date: date,
    end_date: date,
    roster_path: Optional[Path] = None,
    coverage_path: Optional[Path] = None,
    leave_path: Optional[Path] = None,
    output_dir: Path = OUTPUTS_DIR,
    seed: Optional[int] = None,
    options: Optional[GenerationOptions] = None,
    team_ids: Optional[List[str]] = None,
    analysis_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Generate a roster, audit it and write the reports.

    Args:
        start_date:    First date to schedule
        end_date:      Last date to schedule
        roster_path:   Roster CSV (default: config/roster.csv)
        coverage_path: Coverage CSV (default: config/coverage.csv)
        leave_path:    Leave CSV (default: config/leave.csv, optional)
        output_dir:    Directory for output files
        seed:          Seed for the tie-break generator
        options:       GenerationOptions for the request
        team_ids:      Restrict the roster to these teams
        analysis_date: Stamped on each risk analysis (default: today)

    Returns:
        Dict with assignments, gaps, rest exceptions, metrics, violations, analyses, team summary, output paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    options = options or GenerationOptions()
    prefix = f"dry_run_{start_date}_{end_date}"
    sep = "=" * 70

    print(f"\n{sep}")
    print("  ROSTER DRY RUN")
    print(f"  Period: {start_date} → {end_date}   seed={seed}")
    print(f"{sep}\n")

    # ── 1. Load inputs ─────────────────────────────────────────────────────
    print("Step 1/6: Loading inputs...")
    employees    = filter_team(load_roster(roster_path), team_ids or [])
    requirements = load_coverage_requirements(coverage_path, start_date, end_date)
    leave_map    = load_leave_map(leave_path)
    print(f"  ✓ {len(employees)} employees | {len(requirements)} requirements | {len(leave_map)} leave dates")

    request = ScheduleRequest(
        start_date=start_date,
        end_date=end_date,
        coverage_requirements=requirements,
        team_ids=list(team_ids or []),
        generation_options=options,
    )

    # ── 2. Validate inputs ─────────────────────────────────────────────────
    print("\nStep 2/6: Validating inputs...")
    checker = ConstraintChecker(employees, leave_map)
    roster_errors, roster_warnings = checker.validate_roster(requirements)

    for err in roster_errors:
        print(f"  ✗ ROSTER ERROR: {err}")
    for w in roster_warnings:
        print(f"  ⚠ WARNING: {w}")

    if roster_errors:
        print("\n  ✗ Cannot proceed — fix roster errors above.")
        sys.exit(1)

    if not roster_warnings:
        print("  ✓ Roster valid")

    # ── 3. Generate ────────────────────────────────────────────────────────
    print("\nStep 3/6: Generating roster...")
    driver = AssignmentDriver(seed=seed)
    try:
        assignments = driver.run(request, employees, leave_map=leave_map)
    except ValidationError as exc:
        print(f"  ✗ INVALID REQUEST: {exc}")
        sys.exit(1)

    total_slots = sum(len(a.employees) for a in assignments)
    print(f"  ✓ {total_slots} shifts staffed across {len(assignments)} assignments")
    if driver.coverage_gaps:
        print(f"  ⚠ {len(driver.coverage_gaps)} under-covered level buckets")
    if driver.rest_exceptions:
        print(f"  ⚠ {len(driver.rest_exceptions)} shifts staffed below minimum rest")

    # ── 4. Audit ───────────────────────────────────────────────────────────
    print("\nStep 4/6: Checking constraints...")
    hard_violations, soft_violations = checker.check_all(
        assignments,
        requirements=requirements,
        mentorship=options.enforce_mentorship_pairing,
    )
    metrics = calculate_fairness_metrics(assignments, employees, driver.coverage_gaps)

    h_count = len(hard_violations)
    s_count = len(soft_violations)
    status = "✓" if h_count == 0 else "✗"
    print(f"  {status} Hard violations: {h_count}")
    print(f"    Soft violations: {s_count}")
    print(f"    Fairness score:  {metrics['fairness_score']} (CV {metrics['cv']:.1f}%)")

    # ── 5. Pattern risk ────────────────────────────────────────────────────
    print("\nStep 5/6: Analyzing rotation risk...")
    analyzer = NursingPatternAnalyzer()
    analyses = analyzer.analyze_schedule(
        assignments, employees, start_date, end_date,
        leave_map=leave_map,
        analysis_date=analysis_date or date.today(),
    )
    team_summary = analyze_team_patterns(analyses)
    dist = team_summary.risk_distribution
    print(
        "  ✓ " + " | ".join(f"{level.value}: {dist[level]}" for level in RiskLevel)
        + f" | team score {team_summary.team_risk_score}"
    )

    # ── 6. Export ──────────────────────────────────────────────────────────
    print("\nStep 6/6: Exporting outputs...")

    assignments_path = output_dir / f"{prefix}_assignments.json"
    risk_path        = output_dir / f"{prefix}_risk.json"
    violations_path  = output_dir / f"{prefix}_violations.txt"

    with open(assignments_path, "w") as f:
        json.dump({
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "seed": seed,
            "assignments": [a.to_dict() for a in assignments],
            "coverage_gaps": [
                {
                    "date": g.date.isoformat(),
                    "shift_type": g.shift_type.value,
                    "level": g.level,
                    "required": g.required,
                    "assigned": g.assigned,
                }
                for g in driver.coverage_gaps
            ],
            "rest_exceptions": [
                {
                    "date": r.date.isoformat(),
                    "shift_type": r.shift_type.value,
                    "employee_id": r.employee_id,
                    "previous_date": r.previous_date.isoformat(),
                    "previous_shift": r.previous_shift.value,
                    "rest_hours": r.rest_hours,
                }
                for r in driver.rest_exceptions
            ],
            "metrics": {
                k: metrics[k]
                for k in ("mean", "std", "cv", "min", "max", "fairness_score",
                          "counts", "night_counts", "weekend_counts",
                          "night_distribution", "weekend_coverage", "unfilled")
            },
        }, f, indent=2)

    with open(risk_path, "w") as f:
        json.dump({
            "analyses": [a.to_dict() for a in analyses],
            "team": team_summary.to_dict(),
        }, f, indent=2)

    with open(violations_path, "w") as f:
        f.write("=== Constraint Violations ===\n\n")
        f.write(f"HARD ({h_count}):\n")
        for v in hard_violations:
            f.write(f"  {v}\n")
        f.write(f"\nSOFT ({s_count}):\n")
        for v in soft_violations:
            f.write(f"  {v}\n")

    print(f"  ✓ Assignments: {assignments_path.name}")
    print(f"  ✓ Risk:        {risk_path.name}")
    print(f"  ✓ Violations:  {violations_path.name}")
    logger.info(f"Reports written to {output_dir}")

    # ── Summary ────────────────────────────────────────────────────────────
    print(f"\n{sep}")
    print("  SUMMARY")
    print(f"{sep}")
    print(f"  Period:            {start_date} → {end_date}")
    print(f"  Shifts staffed:    {total_slots}")
    print(f"  Unfilled slots:    {metrics['unfilled']}")
    print(f"  Night share:       {metrics['night_distribution']}")
    print(f"  Weekend coverage:  {metrics['weekend_coverage']}%")
    print(f"  Hard violations:   {h_count}  {status}")
    print(f"  Soft violations:   {s_count}")
    print(f"  Team risk score:   {team_summary.team_risk_score}")

    top = sorted(analyses, key=lambda a: a.risk_score, reverse=True)[:3]
    if top and top[0].risk_score > 0:
        print("\n  Highest rotation risk:")
        for a in top:
            if a.risk_score <= 0:
                break
            print(f"    {a.employee_name:<24} {a.risk_score:5.1f}  {a.risk_level.value}")

    for rec in team_summary.urgent_recommendations:
        print(f"\n  ✗ {rec}")

    print(f"\n{sep}\n")

    return {
        "assignments":     assignments,
        "coverage_gaps":   driver.coverage_gaps,
        "rest_exceptions": driver.rest_exceptions,
        "metrics":         metrics,
        "hard_violations": hard_violations,
        "soft_violations": soft_violations,
        "analyses":        analyses,
        "team_summary":    team_summary,
        "outputs": {
            "assignments": assignments_path,
            "risk":        risk_path,
            "violations":  violations_path,
        },
    }


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Dry-run roster generation with safety audit"
    )
    parser.add_argument("--start",      required=True, help="Start date YYYY-MM-DD")
    parser.add_argument("--end",        required=True, help="End date YYYY-MM-DD")
    parser.add_argument("--roster",     default=None,  help="Roster CSV (default: config/roster.csv)")
    parser.add_argument("--coverage",   default=None,  help="Coverage CSV (default: config/coverage.csv)")
    parser.add_argument("--leave",      default=None,  help="Leave CSV (default: config/leave.csv)")
    parser.add_argument("--seed",       type=int, default=None, help="Seed for reproducible tie-breaks")
    parser.add_argument("--output-dir", default=None,  help="Output directory (default: outputs/)")
    parser.add_argument("--team",       action="append", default=None, help="Restrict to team id (repeatable)")
    parser.add_argument("--no-fairness", action="store_true", help="Skip the total-shift fairness penalty")
    parser.add_argument("--prioritize-preferences", action="store_true", help="Boost employees' preferred shifts")
    parser.add_argument("--mentorship", action="store_true", help="Report shifts with no senior staff")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        start = datetime.strptime(args.start, "%Y-%m-%d").date()
        end   = datetime.strptime(args.end,   "%Y-%m-%d").date()
    except ValueError as e:
        print(f"Invalid date format: {e}")
        sys.exit(1)

    options = GenerationOptions(
        enforce_fairness=not args.no_fairness,
        enforce_mentorship_pairing=args.mentorship,
        prioritize_preferences=args.prioritize_preferences,
    )

    out_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR
    run_dry_run(
        start, end,
        roster_path=Path(args.roster) if args.roster else None,
        coverage_path=Path(args.coverage) if args.coverage else None,
        leave_path=Path(args.leave) if args.leave else None,
        output_dir=out_dir,
        seed=args.seed,
        options=options,
        team_ids=args.team,
    )


if __name__ == "__main__":
    main()
