"""Seeded random-walk metric history, used when no history file is available."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

import numpy as np

from kpi_engine.data_models import SEGMENTS, DailyMetricRecord
from kpi_engine.history import MetricHistory

# (start level, per-seed offset, drift bias, step scale) per segment
_WALK = {
    "Retail": (1000.0, 37.0, 0.4, 40.0),
    "SME": (700.0, 19.0, 0.5, 25.0),
    "Enterprise": (300.0, 11.0, 0.6, 18.0),
}
_JITTER = 25.0


def generate_history(days: int = 365, seed: int = 7, end: Optional[date] = None) -> MetricHistory:
    """Daily records ending at ``end`` (default today), one per day, oldest first."""
    if days < 0:
        raise ValueError("days must be >= 0")
    end = end or date.today()
    rng = np.random.default_rng(seed)
    levels = {s: start + seed * offset for s, (start, offset, _, _) in _WALK.items()}

    records = []
    for i in range(days - 1, -1, -1):
        for s in SEGMENTS:
            _, _, bias, scale = _WALK[s]
            levels[s] += (rng.random() - bias) * scale
        values = {s: max(0.0, levels[s] + (rng.random() - 0.5) * _JITTER) for s in SEGMENTS}
        records.append(
            DailyMetricRecord(
                date=end - timedelta(days=i),
                segment_values=values,
                conversion_rate=min(0.25 + rng.random() * 0.15, 0.6),
                revenue_per_user=5.0 + rng.random() * 3.0 + (seed % 7) * 0.2,
            )
        )
    return MetricHistory(records)
