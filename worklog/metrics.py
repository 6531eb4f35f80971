from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from worklog.data import clean_str, field_name, records_frame, round_half_up
from worklog.records import LEVEL_ORDER, Level, WorkRecord


UNKNOWN_LABEL = "unknown"
GROUPING_FIELDS = ("system", "question_type")

RecordsLike = Union[pd.DataFrame, Iterable[WorkRecord]]


def _frame(records: RecordsLike, tz: Optional[str] = None) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        return records
    return records_frame(records, tz=tz)


def _rounded(value: float) -> int:
    out = round_half_up(value)
    return int(out) if out is not None else 0


def compute_kpis(records: RecordsLike) -> Dict[str, int]:
    df = _frame(records)
    total = int(len(df))
    done_mask = df["is_done"]
    done = int(done_mask.sum())
    total_minutes = float(df.loc[done_mask, "minutes"].sum()) if done else 0.0
    urgent = int((~done_mask & (df["priority"] == Level.HIGH.value)).sum())
    return {
        "total_cases": total,
        "done_cases": done,
        "completion_rate": _rounded(done / total * 100) if total else 0,
        "total_minutes": _rounded(total_minutes),
        "avg_minutes": _rounded(total_minutes / done) if done else 0,
        "pending_cases": total - done,
        "urgent_pending": urgent,
    }


def group_counts(records: RecordsLike, field: str, *, unknown_label: str = UNKNOWN_LABEL) -> List[Tuple[str, int]]:
    """(label, count) pairs by count descending; ties keep first-seen order."""
    df = _frame(records)
    column = field_name(field)
    if column in df.columns:
        values = df[column]
    else:
        values = pd.Series([""] * len(df), index=df.index, dtype=object)
    labels = values.map(lambda v: clean_str(v) or unknown_label)
    if labels.empty:
        return []
    counts = labels.groupby(labels, sort=False).size().sort_values(ascending=False, kind="stable")
    return [(str(label), int(n)) for label, n in counts.items()]


def daily_counts(records: RecordsLike, *, tz: Optional[str] = None) -> List[Tuple[str, int]]:
    """Per-day record counts in date order; records with no usable date are left out."""
    df = _frame(records, tz)
    ts = df["question_ts"].dropna()
    if ts.empty:
        return []
    days = ts.dt.normalize()
    counts = days.groupby(days).size().sort_index()
    return [(pd.Timestamp(day).strftime("%Y-%m-%d"), int(n)) for day, n in counts.items()]


def difficulty_breakdown(records: RecordsLike) -> List[Dict[str, Any]]:
    df = _frame(records)
    done = df[df["is_done"]]
    # The submit form defaults to MID, so a blank level is read as MID.
    # Unrecognised text stays as is and falls outside every level.
    levels = done["difficulty"].replace("", Level.MID.value)
    out: List[Dict[str, Any]] = []
    for level in LEVEL_ORDER:
        minutes = done.loc[levels == level.value, "minutes"]
        count = int(len(minutes))
        total = float(minutes.sum()) if count else 0.0
        out.append(
            {
                "level": level.value,
                "label": level.label,
                "count": count,
                "total_minutes": _rounded(total),
                "avg_minutes": _rounded(total / count) if count else 0,
            }
        )
    return out


def aggregate(records: RecordsLike, *, tz: Optional[str] = None) -> Dict[str, Any]:
    """KPIs, groupings, daily buckets and the difficulty breakdown in one pass.

    ``tz`` only matters for record lists; a prepared frame is used as is.
    """
    df = _frame(records, tz)
    return {
        "kpis": compute_kpis(df),
        "groupings": {field: group_counts(df, field) for field in GROUPING_FIELDS},
        "buckets": {"daily": daily_counts(df)},
        "difficulty": difficulty_breakdown(df),
    }
