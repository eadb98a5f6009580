#!/usr/bin/env python3
"""
Dry Run - Generate a roster and its safety audit from the CSVs in config/

Usage:
  python scripts/run_dry_run.py --start 2026-03-02 --end 2026-03-29 --seed 42

Outputs to outputs/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from nurse_roster.dry_run import main

if __name__ == "__main__":
    main()
