from __future__ import annotations

import logging
import math
import os
from functools import lru_cache

import numpy as np
import pandas as pd
import uvicorn
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import MetaSegmentsResponse, MetaWindowsResponse, SelectionModel, WindowOption
from kpi_engine.charts import rows_to_frame
from kpi_engine.controller import SelectionResult, run_pipeline
from kpi_engine.data import load_dashboard_data
from kpi_engine.data_models import SEGMENTS
from kpi_engine.errors import IntegrityError, InvalidSelectionError
from kpi_engine.filters import DEFAULT_WINDOW, WINDOW_DAYS, WINDOW_LABELS, Selection, normalize_selection
from kpi_engine.history import MetricHistory
from kpi_engine.metrics_overview import compute_overview


app = FastAPI(title="Segment KPI Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@lru_cache(maxsize=256)
def _result_for(history: MetricHistory, selection: Selection) -> SelectionResult:
    rows, summary = run_pipeline(history, selection)
    return SelectionResult(selection=selection, rows=rows, summary=summary)


def _resolve(model: SelectionModel) -> SelectionResult:
    """Each request carries its own selection; results are shared per (history, selection)."""
    selection = normalize_selection(model.model_dump(exclude_unset=True))
    history: MetricHistory = load_dashboard_data()["history"]  # type: ignore[assignment]
    return _result_for(history, selection)


@app.get("/meta/segments", response_model=MetaSegmentsResponse)
def meta_segments():
    return MetaSegmentsResponse(segments=list(SEGMENTS))


@app.get("/meta/windows", response_model=MetaWindowsResponse)
def meta_windows():
    options = [WindowOption(token=t, days=d, label=WINDOW_LABELS[t]) for t, d in WINDOW_DAYS.items()]
    return MetaWindowsResponse(windows=options, default=DEFAULT_WINDOW)


@app.post("/overview")
def overview(selection: SelectionModel, charts: bool = Query(default=True)):
    try:
        payload = compute_overview(_resolve(selection), include_charts=charts)
        return _json(payload)
    except InvalidSelectionError as exc:
        return _error(422, exc)
    except IntegrityError as exc:
        logger.exception("overview failed: bad history")
        return _error(500, exc)
    except Exception as exc:
        logger.exception("overview failed")
        return _error(500, exc)


@app.post("/export/rows")
def export_rows(selection: SelectionModel):
    try:
        result = _resolve(selection)
        frame = rows_to_frame(result.rows)
        if not frame.empty:
            frame["date"] = frame["date"].dt.strftime("%Y-%m-%d")
        csv_bytes = frame.to_csv(index=False).encode("utf-8")
    except InvalidSelectionError as exc:
        return _error(422, exc)
    except IntegrityError as exc:
        logger.exception("export_rows failed: bad history")
        return _error(500, exc)
    except Exception as exc:
        logger.exception("export_rows failed")
        return _error(500, exc)
    filename = f"rows_{result.selection.window}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


def run() -> None:
    """Serve the API with uvicorn (``kpi-dashboard-api``)."""
    uvicorn.run(app, host=os.environ.get("KPI_API_HOST", "127.0.0.1"), port=int(os.environ.get("KPI_API_PORT", "8000")))


if __name__ == "__main__":
    run()
