import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import List, Optional

from kpi_engine.charts import arpu_chart, conversion_chart, rows_to_frame, segment_trend_chart
from kpi_engine.controller import RecomputationController
from kpi_engine.data import load_dashboard_data
from kpi_engine.data_models import SEGMENTS, KPISummary
from kpi_engine.errors import IntegrityError, InvalidSelectionError
from kpi_engine.filters import DEFAULT_WINDOW, WINDOW_DAYS, WINDOW_LABELS

alt.data_transformers.disable_max_rows()
# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, caption: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        if caption:
            st.caption(caption)
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_selection_summary(window: str, segments: List[str]) -> str:
    window_chip = f"Range: {WINDOW_LABELS[window]}"
    seg_chip = "Segments: none" if not segments else f"Segments: {', '.join(segments)}"
    return "".join([f"<span class='chip'>{txt}</span>" for txt in [window_chip, seg_chip]])


def format_growth(summary: KPISummary) -> Optional[str]:
    if not summary.growth_defined:
        return None
    return f"{summary.growth_percent:+.1f}%"


def get_controller(history) -> RecomputationController:
    """One controller per browser session; rebuilt against a reloaded history."""
    controller: Optional[RecomputationController] = st.session_state.get("kpi_controller")
    if controller is None:
        controller = RecomputationController(history)
        st.session_state["kpi_controller"] = controller
    elif controller.history is not history:
        controller.reload(history)
    return controller


# ---------- UI setup ----------
st.set_page_config(page_title="Segment KPI Dashboard", layout="wide")
inject_base_styles()
st.title("Dashboard")
st.caption("Active users, conversion and ARPU by segment over a trailing window.")

try:
    data_ctx = load_dashboard_data()
except IntegrityError as exc:
    st.error(f"Metric history is invalid: {exc}")
    st.stop()

history = data_ctx["history"]
if data_ctx.get("source") == "generated":
    st.info("No metrics_history*.csv found; showing generated data.")

controller = get_controller(history)

# ----- Sidebar: filters -----
windows = list(WINDOW_DAYS)
with st.sidebar:
    st.markdown("### Filters")
    window = st.selectbox(
        "Date Range",
        windows,
        index=windows.index(controller.selection.window or DEFAULT_WINDOW),
        format_func=lambda t: WINDOW_LABELS[t],
    )
    segments = st.multiselect("Segments", list(SEGMENTS), default=controller.selection.ordered_segments())

try:
    result = controller.select(window, segments)
except InvalidSelectionError as exc:
    st.error(str(exc))
    st.stop()

summary = result.summary
st.markdown(
    f"<div class='chip-row'>{format_selection_summary(result.selection.window, result.selection.ordered_segments())}</div>",
    unsafe_allow_html=True,
)

# ----- KPIs -----
k1, k2, k3 = st.columns(3)
growth = format_growth(summary)
k1.metric("Active Users", f"{round(summary.current_total):,}", delta=growth if growth is not None else "n/a (zero baseline)")
k2.metric("Avg. Conversion", f"{summary.average_conversion * 100:.1f}%", help="Across selected range")
k3.metric("ARPU", f"${summary.average_revenue_per_user:.2f}", help="Average revenue per user")

frame = rows_to_frame(result.rows)
if frame.empty:
    st.warning("No data in the selected window.")
    st.stop()

# ----- Charts -----
with card("Active Users Trend", "Drag on the chart to brush a date range."):
    if result.selection.segments:
        st.altair_chart(segment_trend_chart(frame, result.selection.segments), use_container_width=True)
    else:
        st.caption("Select at least one segment.")

c1, c2 = st.columns(2)
with c1:
    with card("Conversion Rate"):
        st.altair_chart(conversion_chart(frame), use_container_width=True)
with c2:
    with card("ARPU by Day"):
        st.altair_chart(arpu_chart(frame), use_container_width=True)

export_df = frame.assign(date=frame["date"].dt.strftime("%Y-%m-%d"))
st.download_button(
    "Export CSV",
    data=export_df.to_csv(index=False).encode("utf-8"),
    file_name=f"rows_{result.selection.window}.csv",
    mime="text/csv",
)
with st.expander("Daily rows"):
    st.dataframe(pd.DataFrame(export_df), use_container_width=True, hide_index=True)
