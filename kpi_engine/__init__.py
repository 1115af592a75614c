"""UI-agnostic KPI engine for the segmented metrics dashboard.

This package contains:
- the validated metric history store and its loaders (CSV / generated)
- window and segment selection
- the KPI summarizer and the memoizing selection controller
- chart helpers and JSON-serializable page payloads
"""

from kpi_engine.controller import RecomputationController, SelectionResult, run_pipeline
from kpi_engine.data_models import SEGMENTS, DailyMetricRecord, DerivedRow, KPISummary
from kpi_engine.errors import IntegrityError, InvalidSelectionError
from kpi_engine.filters import WINDOW_DAYS, Selection, apply_filter, normalize_selection, resolve_window
from kpi_engine.history import MetricHistory
from kpi_engine.metrics_summary import summarize

__all__ = [
    "SEGMENTS",
    "WINDOW_DAYS",
    "DailyMetricRecord",
    "DerivedRow",
    "IntegrityError",
    "InvalidSelectionError",
    "KPISummary",
    "MetricHistory",
    "RecomputationController",
    "Selection",
    "SelectionResult",
    "apply_filter",
    "normalize_selection",
    "resolve_window",
    "run_pipeline",
    "summarize",
]
