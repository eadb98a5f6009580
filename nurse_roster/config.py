"""
config.py — Input loaders for the rostering engine

Loads the employee roster, coverage requirements, leave map and (optionally)
a full ScheduleRequest JSON document. Tunable constants live in
schedule_config and are re-exported here.

Roster CSV (config/roster.csv):
  id, name, level, team[, preferred_shifts]
  level accepts "3" or "lv3"; preferred_shifts is ';'-separated ("day;evening")

Coverage CSV (config/coverage.csv):
  date, shift_type, level, count
  rows with an empty date are a template applied to every date in the range

Leave CSV (config/leave.csv):
  date, employee_ids   (';'-separated)
"""

import json
import logging
import re
from collections import OrderedDict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from nurse_roster.models import (
    CoverageRequirement,
    Employee,
    GenerationOptions,
    LevelRequirement,
    ScheduleRequest,
    parse_shift_type,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_ROSTER_PATH   = DEFAULT_CONFIG_DIR / "roster.csv"
DEFAULT_COVERAGE_PATH = DEFAULT_CONFIG_DIR / "coverage.csv"
DEFAULT_LEAVE_PATH    = DEFAULT_CONFIG_DIR / "leave.csv"


# ---------------------------------------------------------------------------
# Re-export from schedule_config
# ---------------------------------------------------------------------------
from nurse_roster.schedule_config import (    # noqa: E402
    SCHEDULING_RULES,
    SHIFT_DEFINITIONS,
    get_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_LEVEL_RE = re.compile(r"^\s*(?:lv|level)?\s*(\d+)\s*$", re.IGNORECASE)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:  # NaN
        return True
    return not str(value).strip() or str(value).strip().lower() == "nan"


def parse_level(raw: Any) -> int:
    """
    Parse a skill level.
    Handles:
      - int / float:  3, 3.0
      - plain string: "3"
      - tier label:   "lv3", "LV 3", "level3"
    Raises ValueError otherwise.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Invalid level: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    m = _LEVEL_RE.match(str(raw))
    if not m:
        raise ValueError(f"Invalid level: {raw!r}")
    return int(m.group(1))


def parse_date(raw: Any) -> date:
    """Parse YYYY-MM-DD (or a date/datetime/Timestamp) to a date."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return datetime.strptime(str(raw).strip()[:10], "%Y-%m-%d").date()


def _split_list(raw: Any) -> List[str]:
    if _is_blank(raw):
        return []
    return [p.strip() for p in str(raw).replace(",", ";").split(";") if p.strip()]


# ---------------------------------------------------------------------------
# Roster loader
# ---------------------------------------------------------------------------

def load_roster(roster_path: Optional[Path] = None) -> List[Employee]:
    """
    Load the employee roster from CSV.

    Expected columns: id, name, level, team (optional), preferred_shifts (optional)

    Returns employees in file order (file order is the ranking tie-break order).
    """
    import pandas as pd

    path = Path(roster_path) if roster_path else DEFAULT_ROSTER_PATH
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    df = pd.read_csv(path, dtype={"id": str, "team": str})
    missing = {"id", "name", "level"} - set(df.columns)
    if missing:
        raise ValueError(f"Roster {path} missing columns: {sorted(missing)}")

    employees: List[Employee] = []
    for idx, row in df.iterrows():
        try:
            employees.append(Employee(
                id=str(row["id"]).strip(),
                name=str(row["name"]).strip(),
                level=parse_level(row["level"]),
                team="" if _is_blank(row.get("team")) else str(row.get("team")).strip(),
                preferred_shifts=tuple(_split_list(row.get("preferred_shifts"))),
            ))
        except ValueError as exc:
            raise ValueError(f"Roster {path} row {idx + 2}: {exc}") from exc

    logger.info(f"Loaded {len(employees)} employees from {path}")
    return employees


# ---------------------------------------------------------------------------
# Coverage loader
# ---------------------------------------------------------------------------

def load_coverage_requirements(
    coverage_path: Optional[Path] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[CoverageRequirement]:
    """
    Load coverage requirements from CSV.

    Rows with an empty date are expanded to every date in [start, end];
    dated rows outside [start, end] are dropped. Rows are grouped into one
    CoverageRequirement per (date, shift_type), levels in file order.
    """
    import pandas as pd

    from nurse_roster.engine import get_date_range

    path = Path(coverage_path) if coverage_path else DEFAULT_COVERAGE_PATH
    if not path.exists():
        raise FileNotFoundError(f"Coverage file not found: {path}")

    df = pd.read_csv(path, dtype={"date": str, "shift_type": str})
    missing = {"date", "shift_type", "level", "count"} - set(df.columns)
    if missing:
        raise ValueError(f"Coverage {path} missing columns: {sorted(missing)}")

    has_template = any(_is_blank(v) for v in df["date"])
    if has_template and (start is None or end is None):
        raise ValueError(f"Coverage {path} has template rows (empty date); start and end are required")
    all_dates = get_date_range(start, end) if start and end else []

    # (date, shift) → {level: count}, insertion-ordered for determinism
    grouped: "OrderedDict[Tuple[date, Any], Dict[int, int]]" = OrderedDict()
    # template rows first so dated rows override them
    rows = sorted(df.iterrows(), key=lambda item: not _is_blank(item[1]["date"]))
    for idx, row in rows:
        try:
            shift_raw = str(row["shift_type"]).strip()
            try:
                shift: Any = parse_shift_type(shift_raw)
            except ValueError:
                shift = shift_raw  # rejected later by validate_request
            level = parse_level(row["level"])
            count = int(row["count"])
            if _is_blank(row["date"]):
                dates = all_dates
            else:
                d = parse_date(row["date"])
                if (start and d < start) or (end and d > end):
                    continue
                dates = [d]
        except ValueError as exc:
            raise ValueError(f"Coverage {path} row {idx + 2}: {exc}") from exc

        for d in dates:
            levels = grouped.setdefault((d, shift), {})
            levels[level] = count

    requirements = [
        CoverageRequirement(
            date=d,
            shift_type=shift,
            level_requirements=tuple(LevelRequirement(level=lv, count=c) for lv, c in levels.items()),
        )
        for (d, shift), levels in sorted(grouped.items(), key=lambda kv: kv[0][0])
    ]
    logger.info(f"Loaded {len(requirements)} coverage requirements from {path}")
    return requirements


# ---------------------------------------------------------------------------
# Leave map loader
# ---------------------------------------------------------------------------

def load_leave_map(leave_path: Optional[Path] = None) -> Dict[date, List[str]]:
    """
    Load the leave map from CSV.

    Returns: {date: [employee_id]}
    """
    import pandas as pd

    path = Path(leave_path) if leave_path else DEFAULT_LEAVE_PATH
    if not path.exists():
        logger.warning(f"Leave map not found: {path}. Returning empty map.")
        return {}

    df = pd.read_csv(path, dtype=str)
    leave_map: Dict[date, List[str]] = {}
    for idx, row in df.iterrows():
        try:
            d = parse_date(row["date"])
        except ValueError as exc:
            raise ValueError(f"Leave map {path} row {idx + 2}: {exc}") from exc
        leave_map.setdefault(d, []).extend(_split_list(row.get("employee_ids")))

    logger.info(f"Loaded leave map: {len(leave_map)} dates from {path}")
    return leave_map


# ---------------------------------------------------------------------------
# ScheduleRequest (JSON)
# ---------------------------------------------------------------------------

def request_from_dict(data: Dict[str, Any]) -> ScheduleRequest:
    """Build a ScheduleRequest from the JSON document shape used by callers."""
    requirements = []
    for req in data.get("coverage_requirements", []):
        requirements.append(CoverageRequirement(
            date=parse_date(req["date"]),
            shift_type=req["shift_type"],
            level_requirements=tuple(
                LevelRequirement(level=parse_level(lr["level"]), count=int(lr["count"]))
                for lr in req.get("level_requirements", [])
            ),
        ))

    opts = data.get("generation_options") or {}
    options = GenerationOptions(
        enforce_fairness=bool(opts.get("enforce_fairness", True)),
        enforce_mentorship_pairing=bool(opts.get("enforce_mentorship_pairing", False)),
        prioritize_preferences=bool(opts.get("prioritize_preferences", False)),
    )

    return ScheduleRequest(
        start_date=parse_date(data["start_date"]),
        end_date=parse_date(data["end_date"]),
        coverage_requirements=requirements,
        team_ids=[str(t) for t in data.get("team_ids", [])],
        generation_options=options,
    )


def load_schedule_request(request_path: Path) -> ScheduleRequest:
    path = Path(request_path)
    with open(path) as f:
        data = json.load(f)
    try:
        request = request_from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Malformed schedule request {path}: {exc}") from exc
    logger.info(
        f"Loaded request {request.start_date} → {request.end_date} "
        f"({len(request.coverage_requirements)} requirements) from {path}"
    )
    return request


def filter_team(employees: List[Employee], team_ids: List[str]) -> List[Employee]:
    """Restrict the roster to the requested teams (no-op for an empty team list)."""
    if not team_ids:
        return list(employees)
    wanted = set(team_ids)
    return [e for e in employees if e.team in wanted]


# ---------------------------------------------------------------------------
# Quick validation
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    roster = load_roster()
    print(f"Loaded {len(roster)} employees")
    for e in roster:
        prefs = ", ".join(s.value for s in e.preferred_shifts) or "(none)"
        print(f"  {e.id:<6} {e.name:<22} lv{e.level} team={e.team or '-'} | {prefs}")

    leave = load_leave_map()
    print(f"\nLeave map: {len(leave)} dates")
    print(f"Min rest: {SCHEDULING_RULES['min_rest_hours']}h | shifts: {[s.value for s in SHIFT_DEFINITIONS]}")
