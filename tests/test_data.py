import logging
from datetime import date
from pathlib import Path

import pytest

from kpi_engine.data import load_dashboard_data, read_history_csv, write_history_csv
from kpi_engine.data_models import SEGMENTS
from kpi_engine.errors import IntegrityError
from kpi_engine.mock_data import generate_history

HEADER = "date,Retail,SME,Enterprise,conversion,arpu\n"


def write_tmp(tmp_path: Path, content: str, name: str = "metrics_history.csv") -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_reads_history_csv(tmp_path: Path):
    path = write_tmp(
        tmp_path,
        HEADER + "2024-01-01,10,20,30,0.3,5.5\n2024-01-02,11,21,31,0.25,6\n",
    )
    history = read_history_csv(path)
    assert len(history) == 2
    first = history.records[0]
    assert first.date == date(2024, 1, 1)
    assert dict(first.segment_values) == {"Retail": 10.0, "SME": 20.0, "Enterprise": 30.0}
    assert first.conversion_rate == pytest.approx(0.3)


def test_missing_column(tmp_path: Path):
    path = write_tmp(tmp_path, "date,Retail,SME,conversion,arpu\n2024-01-01,1,2,0.3,5\n")
    with pytest.raises(IntegrityError, match="Enterprise"):
        read_history_csv(path)


def test_blank_segment_cell_is_not_zero_filled(tmp_path: Path):
    path = write_tmp(tmp_path, HEADER + "2024-01-01,10,,30,0.3,5.5\n")
    with pytest.raises(IntegrityError, match="SME"):
        read_history_csv(path)


def test_non_numeric_value(tmp_path: Path):
    path = write_tmp(tmp_path, HEADER + "2024-01-01,10,abc,30,0.3,5.5\n")
    with pytest.raises(IntegrityError, match="row 2"):
        read_history_csv(path)


def test_unsorted_csv(tmp_path: Path):
    path = write_tmp(tmp_path, HEADER + "2024-01-02,1,1,1,0.3,5\n2024-01-01,1,1,1,0.3,5\n")
    with pytest.raises(IntegrityError):
        read_history_csv(path)


def test_write_then_read(tmp_path: Path):
    history = generate_history(10, seed=3, end=date(2024, 6, 30))
    path = tmp_path / "metrics_history.csv"
    write_history_csv(history, path)
    loaded = read_history_csv(path)
    assert [r.date for r in loaded] == [r.date for r in history]
    for a, b in zip(loaded, history):
        for s in SEGMENTS:
            assert a.segment_values[s] == pytest.approx(b.segment_values[s])


def test_generated_history_is_valid_and_seeded():
    end = date(2024, 12, 31)
    a = generate_history(365, seed=7, end=end)
    b = generate_history(365, seed=7, end=end)
    c = generate_history(365, seed=8, end=end)
    assert len(a) == 365
    assert a.records[-1].date == end
    assert a.signature == b.signature
    assert a.signature != c.signature
    assert all(0.25 <= r.conversion_rate <= 0.4 for r in a)
    assert all(r.segment_values[s] >= 0 for r in a for s in SEGMENTS)


def test_load_dashboard_data_prefers_files(tmp_path: Path):
    write_tmp(tmp_path, HEADER + "2024-01-01,1,2,3,0.3,5\n")
    ctx = load_dashboard_data(tmp_path)
    assert ctx["source"] == "file"
    assert ctx["files"] == ["metrics_history.csv"]
    assert len(ctx["history"]) == 1


def test_load_dashboard_data_falls_back_to_generated(tmp_path: Path):
    ctx = load_dashboard_data(tmp_path)
    assert ctx["source"] == "generated"
    assert len(ctx["history"]) == 365


def test_fallback_log_names_searched_directory(tmp_path: Path, caplog):
    with caplog.at_level(logging.INFO, logger="kpi_engine.data"):
        load_dashboard_data(tmp_path)
    assert str(tmp_path) in caplog.text
