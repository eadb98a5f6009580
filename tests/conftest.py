"""
Shared fixtures for the rostering engine tests
"""

import random
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from nurse_roster.models import Employee


class FixedRandom(random.Random):
    """Always draws 0.5, so the tie-break term is exactly zero."""

    def random(self):
        return 0.5


class NoDrawRandom(random.Random):
    """Fails the test if the scorer consumes a random draw."""

    def random(self):
        raise AssertionError("random draw consumed")


# 2026-03-02 is a Monday
MONDAY = date(2026, 3, 2)


@pytest.fixture
def fixed_rng():
    return FixedRandom()


@pytest.fixture
def three_level1():
    return [
        Employee(id="a", name="Alice", level=1),
        Employee(id="b", name="Bob", level=1),
        Employee(id="c", name="Carol", level=1),
    ]


@pytest.fixture
def mixed_roster():
    return [
        Employee(id="n1", name="Nina", level=1),
        Employee(id="n2", name="Omar", level=1),
        Employee(id="s1", name="Sara", level=3),
        Employee(id="s2", name="Tom", level=3),
    ]
