from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple

from kpi_engine.data_models import SEGMENTS, DailyMetricRecord, DerivedRow
from kpi_engine.errors import InvalidSelectionError
from kpi_engine.history import MetricHistory


WINDOW_DAYS: Dict[str, int] = {
    "30d": 30,
    "90d": 90,
    "180d": 180,
    "365d": 365,
}
WINDOW_LABELS: Dict[str, str] = {
    "30d": "Last 30 days",
    "90d": "Last 90 days",
    "180d": "Last 180 days",
    "365d": "Last 365 days",
}
DEFAULT_WINDOW = "90d"


@dataclass(frozen=True)
class Selection:
    window: str = DEFAULT_WINDOW
    segments: FrozenSet[str] = field(default_factory=lambda: frozenset(SEGMENTS))

    def ordered_segments(self) -> List[str]:
        return [s for s in SEGMENTS if s in self.segments]

    def as_dict(self) -> Dict[str, object]:
        return {"window": self.window, "segments": self.ordered_segments()}


def window_days(token: str) -> int:
    try:
        return WINDOW_DAYS[token]
    except (KeyError, TypeError):
        raise InvalidSelectionError(
            f"unknown window '{token}' (expected one of {list(WINDOW_DAYS)})"
        ) from None


def validate_segments(segments: Iterable[object]) -> FrozenSet[str]:
    if segments is None:
        raise InvalidSelectionError("segments must be a collection of segment names, got None")
    if isinstance(segments, str):
        segments = [segments]
    requested = list(segments)
    unknown = sorted({repr(s) for s in requested if s not in SEGMENTS})
    if unknown:
        raise InvalidSelectionError(
            f"unknown segments {', '.join(unknown)} (expected a subset of {list(SEGMENTS)})"
        )
    return frozenset(requested)  # type: ignore[arg-type]


def normalize_selection(raw: dict) -> Selection:
    """Build a validated Selection from a loosely-typed dict (API body, widget state).

    A missing ``window`` key means the default window and a missing ``segments`` key
    means every segment. Explicit values are validated as given, so an empty
    window token is rejected and an empty segment list stays empty.
    """
    window = raw["window"] if "window" in raw else DEFAULT_WINDOW
    window_days(window)
    segments = raw["segments"] if "segments" in raw else SEGMENTS
    return Selection(window=window, segments=validate_segments(segments))


def resolve_window(history: MetricHistory | Sequence[DailyMetricRecord], window: str) -> Tuple[DailyMetricRecord, ...]:
    n = window_days(window)
    records = history.records if isinstance(history, MetricHistory) else tuple(history)
    if not records:
        return ()
    return tuple(records[-n:])


def apply_filter(records: Sequence[DailyMetricRecord], segments: Iterable[object]) -> Tuple[DerivedRow, ...]:
    active = validate_segments(segments)
    ordered = [s for s in SEGMENTS if s in active]
    return tuple(
        DerivedRow(
            date=rec.date,
            selected_total=float(sum(rec.segment_values[s] for s in ordered)),
            record=rec,
        )
        for rec in records
    )
