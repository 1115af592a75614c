from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd

from kpi_engine.errors import IntegrityError
from kpi_engine.history import FRAME_COLUMNS, MetricHistory
from kpi_engine.mock_data import generate_history

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("KPI_DATA_DIR", Path(__file__).resolve().parents[1]))
FILE_GLOB = "metrics_history*.csv"
MOCK_DAYS = 365
MOCK_SEED = 7


def get_source_files(data_dir: Path | None = None) -> List[Path]:
    return sorted((data_dir or DATA_DIR).glob(FILE_GLOB))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def read_history_csv(csv_path: Path) -> MetricHistory:
    """Load ``date, Retail, SME, Enterprise, conversion, arpu`` rows into a store."""
    try:
        df = pd.read_csv(csv_path, encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        return MetricHistory()
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in FRAME_COLUMNS if c not in df.columns]
    if missing:
        raise IntegrityError(f"{csv_path.name}: missing columns {missing}")
    for col in FRAME_COLUMNS[1:]:
        numeric = pd.to_numeric(df[col], errors="coerce")
        bad = df[col].notna() & numeric.isna()
        if bad.any():
            row = int(bad.idxmax()) + 2
            raise IntegrityError(f"{csv_path.name} row {row}: invalid {col} '{df.at[bad.idxmax(), col]}'")
        df[col] = numeric
    return MetricHistory.from_frame(df[FRAME_COLUMNS])


def write_history_csv(history: MetricHistory, csv_path: Path) -> None:
    history.to_frame().to_csv(csv_path, index=False)


@lru_cache(maxsize=4)
def _load_history_cached(files_sig: Tuple[Tuple[str, float], ...]) -> MetricHistory:
    # newest file by name wins (metrics_history_2025.csv over metrics_history_2024.csv)
    path = Path(files_sig[-1][0])
    history = read_history_csv(path)
    logger.info("loaded %d records from %s", len(history), path.name)
    return history


@lru_cache(maxsize=1)
def _mock_history() -> MetricHistory:
    return generate_history(MOCK_DAYS, seed=MOCK_SEED)


def load_dashboard_data(data_dir: Path | None = None) -> Dict[str, object]:
    searched = data_dir or DATA_DIR
    files = get_source_files(searched)
    if not files:
        logger.info("no %s files under %s, using generated history", FILE_GLOB, searched)
        return {"files": [], "source": "generated", "history": _mock_history()}
    return {
        "files": [f.name for f in files],
        "source": "file",
        "history": _load_history_cached(file_signature(files)),
    }
