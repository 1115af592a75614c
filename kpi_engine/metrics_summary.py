from __future__ import annotations

from typing import Optional, Sequence

from kpi_engine.data_models import DerivedRow, KPISummary


def growth_percent(first: float, last: float) -> Optional[float]:
    """Percent change from ``first`` to ``last``.

    A zero baseline gives 0.0 when ``last`` is also zero and ``None`` (undefined
    growth) otherwise.
    """
    if first == 0:
        return 0.0 if last == 0 else None
    return (last - first) / first * 100.0


def summarize(rows: Sequence[DerivedRow]) -> KPISummary:
    if not rows:
        return KPISummary()

    n = len(rows)
    first = rows[0].selected_total
    last = rows[-1].selected_total
    # conversion and ARPU do not depend on the segment selection
    conv_sum = sum(r.record.conversion_rate for r in rows)
    arpu_sum = sum(r.record.revenue_per_user for r in rows)

    return KPISummary(
        current_total=float(last),
        growth_percent=growth_percent(first, last),
        average_conversion=conv_sum / n,
        average_revenue_per_user=arpu_sum / n,
    )
