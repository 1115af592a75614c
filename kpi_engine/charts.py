from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import altair as alt
import pandas as pd

from kpi_engine.data_models import SEGMENTS, DerivedRow

alt.data_transformers.disable_max_rows()

SEGMENT_COLORS = {"Retail": "#3f51b5", "SME": "#00bcd4", "Enterprise": "#ff9800"}
ROW_COLUMNS = ["date", "selected_total", *SEGMENTS, "conversion", "arpu"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def rows_to_frame(rows: Sequence[DerivedRow]) -> pd.DataFrame:
    """One line per day: selected total, raw segment values, conversion and ARPU."""
    data = []
    for row in rows:
        rec = row.record
        item: Dict[str, Any] = {"date": pd.Timestamp(row.date), "selected_total": row.selected_total}
        item.update({s: rec.segment_values[s] for s in SEGMENTS})
        item["conversion"] = rec.conversion_rate
        item["arpu"] = rec.revenue_per_user
        data.append(item)
    return pd.DataFrame(data, columns=ROW_COLUMNS)


def segment_trend_chart(frame: pd.DataFrame, segments: Iterable[str]) -> alt.Chart:
    active = [s for s in SEGMENTS if s in set(segments)]
    long_df = frame.melt(id_vars="date", value_vars=active, var_name="segment", value_name="users")
    hover = alt.selection_point(fields=["segment"], on="mouseover", empty="all")
    brush = alt.selection_interval(encodings=["x"])
    return (
        alt.Chart(long_df)
        .mark_line(strokeWidth=2)
        .encode(
            x=alt.X("date:T", title="Date", axis=alt.Axis(grid=False)),
            y=alt.Y("users:Q", title="Active users", axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color(
                "segment:N",
                title="Segment",
                scale=alt.Scale(domain=active, range=[SEGMENT_COLORS[s] for s in active]),
            ),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=[
                alt.Tooltip("date:T", title="Date"),
                alt.Tooltip("segment:N", title="Segment"),
                alt.Tooltip("users:Q", title="Users", format=",.0f"),
            ],
        )
        .add_params(hover, brush)
        .properties(height=280)
    )


def conversion_chart(frame: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(frame)
        .mark_area(opacity=0.35, line=True)
        .encode(
            x=alt.X("date:T", title="Date", axis=alt.Axis(grid=False)),
            y=alt.Y("conversion:Q", title="Conversion", axis=alt.Axis(format=".0%", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:T", title="Date"), alt.Tooltip("conversion:Q", title="Conversion", format=".2%")],
        )
        .properties(height=220)
    )


def arpu_chart(frame: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            x=alt.X("date:T", title="Date", axis=alt.Axis(grid=False)),
            y=alt.Y("arpu:Q", title="ARPU", axis=alt.Axis(format="$.2f", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:T", title="Date"), alt.Tooltip("arpu:Q", title="ARPU", format="$.2f")],
        )
        .properties(height=220)
    )
