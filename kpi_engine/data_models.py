"""Record types shared by the history store, filters and summarizer."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Mapping, Optional, Tuple


SEGMENTS: Tuple[str, ...] = ("Retail", "SME", "Enterprise")


@dataclass(frozen=True)
class DailyMetricRecord:
    date: date
    segment_values: Mapping[str, float]
    conversion_rate: float
    revenue_per_user: float


@dataclass(frozen=True)
class DerivedRow:
    """One filtered day. Keeps the source record for segment-independent metrics."""

    date: date
    selected_total: float
    record: DailyMetricRecord


@dataclass(frozen=True)
class KPISummary:
    current_total: float = 0.0
    growth_percent: Optional[float] = 0.0
    average_conversion: float = 0.0
    average_revenue_per_user: float = 0.0

    @property
    def growth_defined(self) -> bool:
        return self.growth_percent is not None

    def as_dict(self) -> Dict[str, object]:
        return {
            "current_total": self.current_total,
            "growth_percent": self.growth_percent,
            "growth_defined": self.growth_defined,
            "average_conversion": self.average_conversion,
            "average_revenue_per_user": self.average_revenue_per_user,
        }
