from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from worklog.charts import count_bar_chart, daily_trend_chart, difficulty_time_chart, share_chart, to_vega_spec
from worklog.data import records_frame
from worklog.filters import FilterCriteria, build_mask, normalize_criteria
from worklog.metrics import aggregate
from worklog.records import WorkRecord
from worklog.sorting import sort_records


CriteriaLike = Union[FilterCriteria, Mapping[str, object], None]

OPTION_FIELDS = {
    "person": "handler_name",
    "system": "system",
    "questioner": "questioner",
    "question_type": "question_type",
}


def _criteria(criteria: CriteriaLike) -> FilterCriteria:
    return criteria if isinstance(criteria, FilterCriteria) else normalize_criteria(criteria)


def _distinct(values: pd.Series) -> List[str]:
    return sorted({str(v) for v in values if v})


def _filters_payload(crit: FilterCriteria) -> Dict[str, Any]:
    out = asdict(crit)
    for key in ("date_from", "date_to"):
        value = out[key]
        out[key] = value.isoformat() if isinstance(value, date) else value
    return out


def filter_options(records: Iterable[WorkRecord], *, system: str = "") -> Dict[str, List[str]]:
    """Distinct values for the records-view dropdowns; sub-modules follow the chosen system."""
    df = records_frame(records)
    options = {key: _distinct(df[column]) for key, column in OPTION_FIELDS.items()}
    subs = df[df["system"] == system] if system else df
    options["sub_module"] = _distinct(subs["sub_module"])
    return options


def compute_dashboard(records: Iterable[WorkRecord], criteria: CriteriaLike, *, tz: Optional[str] = None) -> Dict[str, Any]:
    crit = _criteria(criteria)
    df = records_frame(records, tz=tz)
    filtered = df[build_mask(df, crit)]
    summary = aggregate(filtered)

    charts: Dict[str, Any] = {}
    if summary["buckets"]["daily"]:
        charts["daily_trend"] = to_vega_spec(daily_trend_chart(summary["buckets"]["daily"]))
    if summary["groupings"]["system"]:
        charts["system_share"] = to_vega_spec(share_chart(summary["groupings"]["system"], title="System"))
    if summary["groupings"]["question_type"]:
        charts["question_type"] = to_vega_spec(count_bar_chart(summary["groupings"]["question_type"], title="Question Type"))
    charts["difficulty_time"] = to_vega_spec(difficulty_time_chart(summary["difficulty"]))

    return {
        "filters": _filters_payload(crit),
        "persons": _distinct(df["handler_name"]),
        **summary,
        "charts": charts,
    }


def compute_records_view(
    records: Iterable[WorkRecord],
    criteria: CriteriaLike,
    *,
    sort_key: str = "question_date",
    direction: str = "desc",
    tz: Optional[str] = None,
) -> Dict[str, Any]:
    records = list(records)
    crit = _criteria(criteria)
    df = records_frame(records, tz=tz)
    keep = build_mask(df, crit).tolist()
    matched = [rec for rec, ok in zip(records, keep) if ok]
    rows = sort_records(matched, sort_key, direction)
    return {
        "filters": _filters_payload(crit),
        "sort": {"key": sort_key, "direction": direction},
        "total": len(records),
        "count": len(rows),
        "rows": [r.to_dict() for r in rows],
        "options": filter_options(records, system=crit.system),
    }


def export_frame(records: Iterable[WorkRecord], criteria: CriteriaLike = None, *, tz: Optional[str] = None) -> pd.DataFrame:
    df = records_frame(records, tz=tz)
    return df[build_mask(df, _criteria(criteria))].drop(columns=["question_ts"])
