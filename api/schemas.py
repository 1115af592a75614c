from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from kpi_engine.data_models import SEGMENTS
from kpi_engine.filters import DEFAULT_WINDOW


class SelectionModel(BaseModel):
    # null is passed through so the engine rejects it with the usual error body
    window: Optional[str] = DEFAULT_WINDOW
    segments: Optional[List[str]] = Field(default_factory=lambda: list(SEGMENTS))


class KPISummaryModel(BaseModel):
    current_total: float
    growth_percent: Optional[float]
    growth_defined: bool
    average_conversion: float
    average_revenue_per_user: float


class WindowOption(BaseModel):
    token: str
    days: int
    label: str


class MetaWindowsResponse(BaseModel):
    windows: List[WindowOption]
    default: str


class MetaSegmentsResponse(BaseModel):
    segments: List[str]
