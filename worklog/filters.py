from __future__ import annotations

import calendar
from dataclasses import dataclass, fields
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from worklog.data import clean_str, parse_level, parse_timestamp, records_frame
from worklog.records import WorkRecord


# criteria attribute -> frame column, matched by exact equality
EXACT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("person", "handler_name"),
    ("system", "system"),
    ("questioner", "questioner"),
    ("question_type", "question_type"),
    ("difficulty", "difficulty"),
    ("priority", "priority"),
)
# criteria attribute -> frame column, matched by substring containment
CONTAINS_FIELDS: Tuple[Tuple[str, str], ...] = (("sub_module", "sub_module"),)
LEVEL_CRITERIA = frozenset({"difficulty", "priority"})

CRITERIA_ALIASES = {
    "handler": "person",
    "handlerName": "person",
    "subModule": "sub_module",
    "questionType": "question_type",
    "isDone": "is_done",
    "dateFrom": "date_from",
    "dateTo": "date_to",
}

DATE_PRESETS = ("today", "week", "month", "all")


@dataclass(frozen=True)
class FilterCriteria:
    person: str = ""
    system: str = ""
    sub_module: str = ""
    questioner: str = ""
    question_type: str = ""
    difficulty: str = ""
    priority: str = ""
    is_done: Optional[bool] = None
    # A bound that did not parse is kept as its raw text and matches nothing.
    date_from: Union[date, str, None] = None
    date_to: Union[date, str, None] = None

    @property
    def has_date_bounds(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    def is_empty(self) -> bool:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None and value != "":
                return False
        return True


def _as_tristate(value: object) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    s = clean_str(value).lower()
    if s in {"是", "true", "yes", "y", "1", "done"}:
        return True
    if s in {"否", "false", "no", "n", "0", "open"}:
        return False
    return None


def _as_date(value: object) -> Union[date, str, None]:
    ts = parse_timestamp(value)
    if ts is not None:
        return ts.date()
    return clean_str(value) or None


def _as_level_text(value: object) -> str:
    level = parse_level(value)
    # Unknown level text is kept so it matches nothing instead of everything.
    return level.value if level is not None else clean_str(value)


def normalize_criteria(raw: Optional[Mapping[str, object]]) -> FilterCriteria:
    raw = dict(raw or {})
    for alias, name in CRITERIA_ALIASES.items():
        if alias in raw and name not in raw:
            raw[name] = raw[alias]

    return FilterCriteria(
        person=clean_str(raw.get("person")),
        system=clean_str(raw.get("system")),
        sub_module=clean_str(raw.get("sub_module")),
        questioner=clean_str(raw.get("questioner")),
        question_type=clean_str(raw.get("question_type")),
        difficulty=_as_level_text(raw.get("difficulty")),
        priority=_as_level_text(raw.get("priority")),
        is_done=_as_tristate(raw.get("is_done")),
        date_from=_as_date(raw.get("date_from")),
        date_to=_as_date(raw.get("date_to")),
    )


def _criterion_text(value: object) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _day(value: object) -> Optional[pd.Timestamp]:
    ts = parse_timestamp(value)
    return ts.normalize() if ts is not None else None


def build_mask(frame: pd.DataFrame, criteria: FilterCriteria) -> pd.Series:
    """Boolean mask over ``frame`` rows that satisfy every active criterion."""
    mask = pd.Series(True, index=frame.index, dtype=bool)
    if frame.empty:
        return mask

    for attr, column in EXACT_FIELDS:
        wanted = getattr(criteria, attr)
        if not wanted:
            continue
        if attr in LEVEL_CRITERIA and parse_level(wanted) is None:
            mask &= False
        else:
            mask &= frame[column] == _criterion_text(wanted)

    for attr, column in CONTAINS_FIELDS:
        wanted = getattr(criteria, attr)
        if wanted:
            mask &= frame[column].astype(str).str.contains(_criterion_text(wanted), regex=False)

    if criteria.is_done is not None:
        mask &= frame["is_done"] == bool(criteria.is_done)

    if criteria.has_date_bounds:
        # Day granularity: the upper bound covers the whole of its day.
        days = frame["question_ts"].dt.normalize()
        mask &= days.notna()
        lower = _day(criteria.date_from)
        upper = _day(criteria.date_to)
        if criteria.date_from is not None:
            mask &= (days >= lower) if lower is not None else False
        if criteria.date_to is not None:
            mask &= (days <= upper) if upper is not None else False
    return mask


def filter_records(
    records: Iterable[WorkRecord],
    criteria: Union[FilterCriteria, Mapping[str, object], None],
    *,
    tz: Optional[str] = None,
) -> List[WorkRecord]:
    """Return the records matching ``criteria``, in input order."""
    records = list(records)
    crit = criteria if isinstance(criteria, FilterCriteria) else normalize_criteria(criteria)
    if crit.is_empty() or not records:
        return records
    mask = build_mask(records_frame(records, tz=tz), crit)
    return [rec for rec, keep in zip(records, mask.tolist()) if keep]


# ---------------- date presets ----------------
def quick_range(preset: str, today: Optional[date] = None) -> Tuple[Optional[date], Optional[date]]:
    today = today or date.today()
    if preset == "today":
        return today, today
    if preset == "week":
        return today - timedelta(days=6), today
    if preset == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    if preset == "all":
        return None, None
    raise ValueError(f"Unknown date preset: {preset!r} (expected one of {', '.join(DATE_PRESETS)})")


def default_dashboard_range(today: Optional[date] = None) -> Tuple[date, date]:
    today = today or date.today()
    return today.replace(day=1), today
