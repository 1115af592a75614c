import pytest

from kpi_engine.data_models import SEGMENTS
from kpi_engine.errors import InvalidSelectionError
from kpi_engine.filters import (
    WINDOW_DAYS,
    Selection,
    apply_filter,
    normalize_selection,
    resolve_window,
    window_days,
)
from kpi_engine.history import MetricHistory


@pytest.mark.parametrize("token", list(WINDOW_DAYS))
def test_window_bound(history_400, token):
    window = resolve_window(history_400, token)
    assert len(window) == min(WINDOW_DAYS[token], len(history_400))
    assert window[-1] == history_400.records[-1]


def test_window_longer_than_history_is_not_padded(history_30):
    window = resolve_window(history_30, "90d")
    assert len(window) == 30
    assert window == history_30.records


def test_window_on_empty_history():
    assert resolve_window(MetricHistory(), "30d") == ()


@pytest.mark.parametrize("token", ["7d", "", None, "90"])
def test_unknown_window_token(history_30, token):
    with pytest.raises(InvalidSelectionError):
        resolve_window(history_30, token)


def test_filter_preserves_order(history_30):
    window = resolve_window(history_30, "30d")
    rows = apply_filter(window, {"SME"})
    assert [r.date for r in rows] == [rec.date for rec in window]
    assert all(r.record is rec for r, rec in zip(rows, window))


def test_filter_sums_only_selected_segments(history_30):
    rec = history_30.records[0]
    rows = apply_filter([rec], ["Retail", "Enterprise"])
    assert rows[0].selected_total == rec.segment_values["Retail"] + rec.segment_values["Enterprise"]


def test_empty_segment_set_emits_zero_rows(history_30):
    rows = apply_filter(history_30.records, set())
    assert len(rows) == len(history_30)
    assert all(r.selected_total == 0 for r in rows)


def test_full_segment_set_matches_record_total(history_30):
    rows = apply_filter(history_30.records, SEGMENTS)
    for row in rows:
        assert row.selected_total == sum(row.record.segment_values.values())


def test_unknown_segment_rejected_without_partial_result(history_30):
    with pytest.raises(InvalidSelectionError, match="Gov"):
        apply_filter(history_30.records, ["Retail", "Gov"])


def test_window_days_lookup():
    assert window_days("365d") == 365


def test_normalize_selection_defaults():
    sel = normalize_selection({})
    assert sel == Selection()
    assert sel.segments == frozenset(SEGMENTS)


def test_normalize_selection_keeps_explicit_empty_set():
    sel = normalize_selection({"window": "30d", "segments": []})
    assert sel.window == "30d"
    assert sel.segments == frozenset()


def test_normalize_selection_is_order_insensitive():
    a = normalize_selection({"segments": ["SME", "Retail"]})
    b = normalize_selection({"segments": ["Retail", "SME"]})
    assert a == b
    assert a.ordered_segments() == ["Retail", "SME"]


def test_normalize_selection_rejects_bad_input():
    with pytest.raises(InvalidSelectionError):
        normalize_selection({"window": "14d"})
    with pytest.raises(InvalidSelectionError):
        normalize_selection({"segments": ["retail"]})


@pytest.mark.parametrize("token", ["", None, 0])
def test_normalize_selection_does_not_default_explicit_window(token):
    with pytest.raises(InvalidSelectionError):
        normalize_selection({"window": token, "segments": ["Retail"]})


def test_normalize_selection_rejects_null_segments():
    with pytest.raises(InvalidSelectionError):
        normalize_selection({"window": "30d", "segments": None})
