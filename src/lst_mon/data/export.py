"""
Delimited-text exports of an LST analysis.

Three tables: the full time series, monthly statistics and yearly
statistics. Null values are written as empty fields; floats are written
with ``repr`` so re-parsing returns exactly the exported values.
"""

import csv
import logging
import os
from typing import List, Optional, Sequence

from ..models import GroupStatistics, LSTAnalysis, ObservationRecord

logger = logging.getLogger(__name__)

TIMESERIES_COLUMNS = ["date", "LST_mean", "LST_stdDev", "LST_count", "year", "month", "day"]
MONTHLY_COLUMNS = ["month", "label", "count", "mean", "min", "max"]
YEARLY_COLUMNS = ["year", "count", "mean", "min", "max"]


def _format(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _parse_float(text: str) -> Optional[float]:
    return float(text) if text != "" else None


def _timeseries_row(record: ObservationRecord) -> list:
    return [
        record.date,
        record.lst_mean,
        record.lst_std,
        record.lst_count,
        record.year,
        record.month,
        record.day,
    ]


def write_table(path: str, columns: Sequence[str], rows: Sequence[Sequence], delimiter: str = ",") -> str:
    """Writes a header row plus ``rows`` and returns ``path``."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f, delimiter=delimiter)
        w.writerow(columns)
        for row in rows:
            w.writerow([_format(v) for v in row])
    return path


def export_timeseries(records: Sequence[ObservationRecord], path: str, delimiter: str = ",") -> str:
    return write_table(path, TIMESERIES_COLUMNS, [_timeseries_row(r) for r in records], delimiter)


def export_monthly(monthly: Sequence[GroupStatistics], path: str, delimiter: str = ",") -> str:
    rows = [[g.key, g.label, g.count, g.mean, g.min, g.max] for g in monthly]
    return write_table(path, MONTHLY_COLUMNS, rows, delimiter)


def export_yearly(yearly: Sequence[GroupStatistics], path: str, delimiter: str = ",") -> str:
    rows = [[g.key, g.count, g.mean, g.min, g.max] for g in yearly]
    return write_table(path, YEARLY_COLUMNS, rows, delimiter)


def read_timeseries(path: str, delimiter: str = ",") -> List[dict]:
    """
    Parses a time-series export back into typed rows.

    Returns:
        List of dicts keyed by ``TIMESERIES_COLUMNS``; empty numeric
        fields come back as None.
    """
    rows = []
    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        missing = set(TIMESERIES_COLUMNS) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path} is missing columns: {sorted(missing)}")
        for row in reader:
            rows.append({
                "date": row["date"],
                "LST_mean": _parse_float(row["LST_mean"]),
                "LST_stdDev": _parse_float(row["LST_stdDev"]),
                "LST_count": int(row["LST_count"]),
                "year": int(row["year"]),
                "month": int(row["month"]),
                "day": int(row["day"]),
            })
    return rows


def export_analysis(result: LSTAnalysis, out_dir: str, prefix: str = "LST", delimiter: str = ",") -> dict:
    """
    Writes the three exports of one analysis into ``out_dir``.

    Returns:
        dict mapping 'timeseries', 'monthly' and 'yearly' to the written paths.
    """
    os.makedirs(out_dir, exist_ok=True)
    ext = "csv" if delimiter == "," else "txt"
    paths = {
        "timeseries": export_timeseries(result.records, os.path.join(out_dir, f"{prefix}_TimeSeries.{ext}"), delimiter),
        "monthly": export_monthly(result.summary.monthly, os.path.join(out_dir, f"{prefix}_Monthly_Stats.{ext}"), delimiter),
        "yearly": export_yearly(result.summary.yearly, os.path.join(out_dir, f"{prefix}_Yearly_Stats.{ext}"), delimiter),
    }
    for name, path in paths.items():
        logger.info(f"[export_analysis] Wrote {name} table to {path}")
    return paths
