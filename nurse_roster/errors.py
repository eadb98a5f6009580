"""
errors.py — Exceptions raised by the rostering engine.

Under-coverage is never an exception; see engine.CoverageGap reporting.
"""


class ValidationError(ValueError):
    """Raised when a scheduling request violates a precondition. No partial work is done."""

    pass
