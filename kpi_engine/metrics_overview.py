from __future__ import annotations

from typing import Any, Dict

from kpi_engine.charts import arpu_chart, conversion_chart, rows_to_frame, segment_trend_chart, to_vega_spec
from kpi_engine.controller import SelectionResult
from kpi_engine.filters import WINDOW_DAYS


def compute_overview(result: SelectionResult, *, include_charts: bool = True) -> Dict[str, Any]:
    selection = result.selection
    rows = result.rows
    summary = result.summary
    frame = rows_to_frame(rows)

    charts: Dict[str, Any] = {}
    if include_charts and not frame.empty:
        if selection.segments:
            charts["segment_trend"] = to_vega_spec(segment_trend_chart(frame, selection.segments))
        charts["conversion"] = to_vega_spec(conversion_chart(frame))
        charts["arpu"] = to_vega_spec(arpu_chart(frame))

    records = frame.assign(date=frame["date"].dt.strftime("%Y-%m-%d")).to_dict(orient="records") if not frame.empty else []
    return {
        "selection": selection.as_dict(),
        "window": {
            "days": WINDOW_DAYS[selection.window],
            "rows": len(rows),
            "start": rows[0].date.isoformat() if rows else None,
            "end": rows[-1].date.isoformat() if rows else None,
        },
        "kpis": summary.as_dict(),
        "rows": records,
        "charts": charts,
    }
