"""Selection state and memoized recomputation for one dashboard view."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from kpi_engine.data_models import DerivedRow, KPISummary
from kpi_engine.filters import Selection, apply_filter, resolve_window, validate_segments, window_days
from kpi_engine.history import MetricHistory
from kpi_engine.metrics_summary import summarize

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, FrozenSet[str]]


@dataclass(frozen=True)
class SelectionResult:
    selection: Selection
    rows: Tuple[DerivedRow, ...]
    summary: KPISummary


@dataclass(frozen=True)
class CacheInfo:
    hits: int
    misses: int
    size: int


def run_pipeline(history: MetricHistory, selection: Selection) -> Tuple[Tuple[DerivedRow, ...], KPISummary]:
    """Window -> segment filter -> summary. Pure; raises the failing stage's error."""
    window = resolve_window(history, selection.window)
    rows = apply_filter(window, selection.segments)
    return rows, summarize(rows)


class RecomputationController:
    """Owns the window/segment selection and the derived rows/summary.

    Every selection event runs to completion before returning. Results are
    cached per ``(history signature, window, segment set)`` for the lifetime
    of the controller, so toggling back to an earlier selection returns the
    same objects. A rejected event leaves the current selection untouched.
    """

    def __init__(self, history: MetricHistory, selection: Optional[Selection] = None):
        self._history = history
        self._cache: Dict[CacheKey, SelectionResult] = {}
        self._hits = 0
        self._misses = 0
        self._current = self._compute(selection or Selection())

    # ---- read side ----
    @property
    def history(self) -> MetricHistory:
        return self._history

    @property
    def selection(self) -> Selection:
        return self._current.selection

    @property
    def current_rows(self) -> Tuple[DerivedRow, ...]:
        return self._current.rows

    @property
    def current_summary(self) -> KPISummary:
        return self._current.summary

    @property
    def current(self) -> SelectionResult:
        return self._current

    def cache_info(self) -> CacheInfo:
        return CacheInfo(hits=self._hits, misses=self._misses, size=len(self._cache))

    # ---- selection events ----
    def set_window(self, token: str) -> SelectionResult:
        window_days(token)
        return self._commit(Selection(window=token, segments=self.selection.segments))

    def set_segments(self, segments: Iterable[str]) -> SelectionResult:
        return self._commit(Selection(window=self.selection.window, segments=validate_segments(segments)))

    def toggle_segment(self, segment: str) -> SelectionResult:
        validate_segments([segment])
        current = self.selection.segments
        updated = current - {segment} if segment in current else current | {segment}
        return self._commit(Selection(window=self.selection.window, segments=updated))

    def select(self, window: str, segments: Iterable[str]) -> SelectionResult:
        window_days(window)
        return self._commit(Selection(window=window, segments=validate_segments(segments)))

    def reload(self, history: MetricHistory) -> SelectionResult:
        """Swap in a new store; entries computed against the old one are dropped."""
        if history.signature != self._history.signature:
            logger.info("history changed (%s -> %s), clearing %d cached selections",
                        self._history.signature[:12], history.signature[:12], len(self._cache))
            self._cache.clear()
        self._history = history
        return self._commit(self.selection)

    # ---- internals ----
    def _key(self, selection: Selection) -> CacheKey:
        return (self._history.signature, selection.window, frozenset(selection.segments))

    def _compute(self, selection: Selection) -> SelectionResult:
        key = self._key(selection)
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            logger.debug("selection cache hit: window=%s segments=%s", selection.window, selection.ordered_segments())
            return cached
        self._misses += 1
        rows, summary = run_pipeline(self._history, selection)
        result = SelectionResult(selection=selection, rows=rows, summary=summary)
        self._cache[key] = result
        logger.debug(
            "selection computed: window=%s segments=%s rows=%d",
            selection.window,
            selection.ordered_segments(),
            len(rows),
        )
        return result

    def _commit(self, selection: Selection) -> SelectionResult:
        self._current = self._compute(selection)
        return self._current
