"""
Time-series aggregation of per-image LST records.

Null records are dropped once, up front; every grouping (month, year,
season) then works on the same filtered list. Empty inputs and empty
buckets produce zero counts with None statistics instead of raising.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from ..config import SEASONS
from ..models import GroupStatistics, ObservationRecord, SummaryStatistics, TimeSeriesSummary


def filter_valid_records(records: Iterable[ObservationRecord]) -> List[ObservationRecord]:
    """Drops records whose LST mean is null (no valid pixel in the region)."""
    return [r for r in records if r.is_valid]


def summarize(values: Sequence[float], spread: bool = True) -> SummaryStatistics:
    """
    Count, mean, min, max and (with ``spread``) population std-dev and median.
    """
    if len(values) == 0:
        return SummaryStatistics(count=0, mean=None, min=None, max=None)

    arr = np.asarray(values, dtype=np.float64)
    return SummaryStatistics(
        count=int(arr.size),
        mean=float(np.mean(arr)),
        min=float(np.min(arr)),
        max=float(np.max(arr)),
        std=float(np.std(arr)) if spread else None,
        median=float(np.median(arr)) if spread else None,
    )


def group_statistics(
    records: Sequence[ObservationRecord],
    key_fn: Callable[[ObservationRecord], object],
    buckets: Sequence[tuple],
) -> List[GroupStatistics]:
    """
    Partitions records with ``key_fn`` and summarises each bucket.

    Args:
        records: Valid records.
        key_fn: Maps a record to its bucket key.
        buckets: Ordered (key, label) pairs; one output row per pair.
    """
    grouped = {key: [] for key, _ in buckets}
    for record in records:
        key = key_fn(record)
        if key in grouped:
            grouped[key].append(record.lst_mean)

    rows = []
    for key, label in buckets:
        stats = summarize(grouped[key], spread=False)
        rows.append(GroupStatistics(
            key=key,
            label=label,
            count=stats.count,
            mean=stats.mean,
            min=stats.min,
            max=stats.max
        ))
    return rows


def monthly_statistics(records: Sequence[ObservationRecord]) -> List[GroupStatistics]:
    """Twelve calendar-month buckets, pooled across years."""
    buckets = [(m, calendar.month_abbr[m]) for m in range(1, 13)]
    return group_statistics(records, lambda r: r.month, buckets)


def yearly_statistics(records: Sequence[ObservationRecord], years: Optional[Iterable[int]] = None) -> List[GroupStatistics]:
    """One bucket per year; defaults to the years present in the records."""
    if years is None:
        years = sorted({r.year for r in records})
    buckets = [(int(y), str(y)) for y in years]
    return group_statistics(records, lambda r: r.year, buckets)


def season_of(month: int, seasons=SEASONS) -> Optional[str]:
    for name, months in seasons:
        if month in months:
            return name
    return None


def seasonal_statistics(records: Sequence[ObservationRecord], seasons=SEASONS) -> List[GroupStatistics]:
    """Fixed three-month buckets (Winter, Spring, Monsoon, Post-Monsoon)."""
    buckets = [(name, f"{name} ({'/'.join(calendar.month_abbr[m] for m in months)})") for name, months in seasons]
    return group_statistics(records, lambda r: season_of(r.month, seasons), buckets)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()


def year_span(start_date, end_date) -> List[int]:
    """
    Calendar years touched by [start_date, end_date).

    >>> year_span("2014-01-01", "2024-01-01")[-1]
    2023
    """
    start = _as_date(start_date)
    last = _as_date(end_date) - timedelta(days=1)
    if last < start:
        return []
    return list(range(start.year, last.year + 1))


def aggregate_timeseries(records: Iterable[ObservationRecord], years: Optional[Iterable[int]] = None) -> TimeSeriesSummary:
    """
    Overall, monthly, yearly and seasonal statistics of the LST means.

    Args:
        records: All per-image records, null means included.
        years: Configured year span for the yearly table (see ``year_span``).
    """
    valid = filter_valid_records(records)
    values = [r.lst_mean for r in valid]

    return TimeSeriesSummary(
        overall=summarize(values),
        monthly=monthly_statistics(valid),
        yearly=yearly_statistics(valid, years),
        seasonal=seasonal_statistics(valid),
        valid_count=len(valid)
    )
