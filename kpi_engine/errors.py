"""Error types raised by the KPI engine."""
from __future__ import annotations


class IntegrityError(ValueError):
    """Raised when a metric history is malformed (ordering, duplicates, missing segments)."""


class InvalidSelectionError(ValueError):
    """Raised when a window token or segment identifier is outside its enumeration."""
