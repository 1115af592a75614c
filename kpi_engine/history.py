"""Immutable, validated store of daily metric records."""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from hashlib import sha256
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Tuple

import pandas as pd

from kpi_engine.data_models import SEGMENTS, DailyMetricRecord
from kpi_engine.errors import IntegrityError

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["date", *SEGMENTS, "conversion", "arpu"]


def _as_number(value: object, what: str, day: object) -> float:
    if isinstance(value, bool):
        raise IntegrityError(f"{day}: {what} is a boolean, not a number ({value!r})")
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise IntegrityError(f"{day}: {what} is not numeric ({value!r})") from exc
    if math.isnan(out) or math.isinf(out):
        raise IntegrityError(f"{day}: {what} is not a finite number ({value!r})")
    return out


def _as_day(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise IntegrityError(f"record date must be a date, got {value!r}")


def _checked(idx: int, record: object) -> DailyMetricRecord:
    if not isinstance(record, DailyMetricRecord):
        raise IntegrityError(f"record {idx}: expected DailyMetricRecord, got {type(record).__name__}")
    day = _as_day(record.date)
    values = record.segment_values
    if not isinstance(values, Mapping):
        raise IntegrityError(f"{day}: segment_values must be a mapping, got {type(values).__name__}")

    missing = [s for s in SEGMENTS if s not in values]
    if missing:
        raise IntegrityError(f"{day}: missing segment values for {missing}")
    unknown = sorted(str(k) for k in values if k not in SEGMENTS)
    if unknown:
        raise IntegrityError(f"{day}: unknown segments {unknown}")

    clean = {}
    for segment in SEGMENTS:
        v = _as_number(values[segment], f"segment '{segment}'", day)
        if v < 0:
            raise IntegrityError(f"{day}: segment '{segment}' is negative ({v})")
        clean[segment] = v

    conversion = _as_number(record.conversion_rate, "conversion_rate", day)
    if not 0.0 <= conversion <= 1.0:
        raise IntegrityError(f"{day}: conversion_rate {conversion} outside [0, 1]")
    arpu = _as_number(record.revenue_per_user, "revenue_per_user", day)
    if arpu < 0:
        raise IntegrityError(f"{day}: revenue_per_user is negative ({arpu})")

    return DailyMetricRecord(
        date=day,
        segment_values=MappingProxyType(clean),
        conversion_rate=conversion,
        revenue_per_user=arpu,
    )


class MetricHistory:
    """Chronologically ordered daily records, validated once at construction.

    Records must be in strictly ascending date order, carry a value for every
    segment in ``SEGMENTS`` and nothing else. Any violation raises
    ``IntegrityError``; there is no zero-fill and no re-sorting.
    """

    def __init__(self, records: Iterable[DailyMetricRecord] = ()):
        checked = []
        prev: date | None = None
        for idx, record in enumerate(records):
            rec = _checked(idx, record)
            if prev is not None:
                if rec.date == prev:
                    raise IntegrityError(f"record {idx}: duplicate date {rec.date.isoformat()}")
                if rec.date < prev:
                    raise IntegrityError(
                        f"record {idx}: {rec.date.isoformat()} is before {prev.isoformat()} (history must be ascending)"
                    )
            checked.append(rec)
            prev = rec.date
        self._records: Tuple[DailyMetricRecord, ...] = tuple(checked)
        self._signature = self._compute_signature()
        logger.debug("metric history built: %d records, signature %s", len(self._records), self._signature[:12])

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "MetricHistory":
        missing = [c for c in FRAME_COLUMNS if c not in df.columns]
        if missing:
            raise IntegrityError(f"history frame missing columns: {missing}")
        try:
            days = pd.to_datetime(df["date"], errors="raise").dt.date.tolist()
        except (TypeError, ValueError) as exc:
            raise IntegrityError(f"history frame has unparseable dates: {exc}") from exc
        records = []
        for day, (_, row) in zip(days, df.iterrows()):
            values = {}
            for segment in SEGMENTS:
                if pd.isna(row[segment]):
                    raise IntegrityError(f"{day}: missing segment values for ['{segment}']")
                values[segment] = row[segment]
            records.append(
                DailyMetricRecord(
                    date=day,
                    segment_values=values,
                    conversion_rate=row["conversion"],
                    revenue_per_user=row["arpu"],
                )
            )
        return cls(records)

    def _compute_signature(self) -> str:
        digest = sha256()
        for rec in self._records:
            parts = [rec.date.isoformat()]
            parts += [repr(rec.segment_values[s]) for s in SEGMENTS]
            parts += [repr(rec.conversion_rate), repr(rec.revenue_per_user)]
            digest.update("|".join(parts).encode("utf-8"))
            digest.update(b"\n")
        return digest.hexdigest()

    @property
    def records(self) -> Tuple[DailyMetricRecord, ...]:
        return self._records

    @property
    def signature(self) -> str:
        """Content hash; two stores with the same records share a signature."""
        return self._signature

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DailyMetricRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        if not self._records:
            return "MetricHistory(empty)"
        return f"MetricHistory({len(self)} records, {self._records[0].date}..{self._records[-1].date})"

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for rec in self._records:
            row = {"date": rec.date}
            row.update({s: rec.segment_values[s] for s in SEGMENTS})
            row["conversion"] = rec.conversion_rate
            row["arpu"] = rec.revenue_per_user
            rows.append(row)
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)
