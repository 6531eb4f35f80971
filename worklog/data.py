from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from worklog.records import Level, WorkRecord


logger = logging.getLogger(__name__)

RECORD_COLUMNS = {
    "id": "id",
    "_rowIndex": "row_index",
    "rowIndex": "row_index",
    "系統別": "system",
    "system": "system",
    "子模組": "sub_module",
    "subModule": "sub_module",
    "處理人員姓名": "handler_name",
    "handlerName": "handler_name",
    "handler": "handler_name",
    "提問人員": "questioner",
    "questioner": "questioner",
    "提問方式": "question_type",
    "questionType": "question_type",
    "提問日期": "question_date",
    "questionDate": "question_date",
    "結案日期": "closed_date",
    "closedDate": "closed_date",
    "難度": "difficulty",
    "difficulty": "difficulty",
    "優先權": "priority",
    "priority": "priority",
    "是否完成": "is_done",
    "isDone": "is_done",
    "處理分鐘數": "minutes",
    "minutes": "minutes",
    "備註": "note",
    "note": "note",
    "建立日期時間": "created_at",
    "createdAt": "created_at",
}

FRAME_COLUMNS = [
    "id",
    "row_index",
    "system",
    "sub_module",
    "handler_name",
    "questioner",
    "question_type",
    "question_date",
    "question_ts",
    "closed_date",
    "difficulty",
    "priority",
    "is_done",
    "minutes",
    "note",
    "created_at",
]

LEVEL_TOKENS = {
    "高": Level.HIGH,
    "中": Level.MID,
    "低": Level.LOW,
    "high": Level.HIGH,
    "mid": Level.MID,
    "medium": Level.MID,
    "low": Level.LOW,
}
DONE_TOKENS = {"是", "y", "yes", "true", "1", "done", "已完成"}
NA_TOKENS = {"nan", "none", "null", "<na>", "nat"}


def field_name(key: str) -> str:
    """Map a sheet header or camelCase key to the WorkRecord attribute name."""
    return RECORD_COLUMNS.get(key, key)


def clean_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    s = str(value).strip()
    if s.lower() in NA_TOKENS:
        return ""
    return s


def parse_level(value: object) -> Optional[Level]:
    if isinstance(value, Level):
        return value
    s = clean_str(value)
    if not s:
        return None
    return LEVEL_TOKENS.get(s.lower(), LEVEL_TOKENS.get(s))


def parse_done(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return clean_str(value).lower() in DONE_TOKENS


def parse_int(value: object) -> Optional[int]:
    s = clean_str(value)
    if not s:
        return None
    try:
        return int(float(s))
    except (TypeError, ValueError):
        return None


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    if isinstance(value, (int, float)) and not math.isfinite(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def parse_minutes(value: object) -> Optional[int]:
    """Minutes as a non-negative whole number; anything else is missing."""
    if isinstance(value, bool):
        return None
    s = clean_str(value)
    if not s:
        return None
    num = pd.to_numeric(s, errors="coerce")
    if pd.isna(num) or not math.isfinite(num) or num < 0:
        return None
    return int(round_half_up(num))


def parse_timestamp(value: object, tz: Optional[str] = None) -> Optional[pd.Timestamp]:
    """Parse an ISO-ish date string into a naive timestamp, or None.

    Aware values are converted to ``tz`` (UTC when not given) and made naive so
    every timestamp in a frame compares on the same clock.
    """
    if isinstance(value, (datetime, date, pd.Timestamp)):
        ts = pd.Timestamp(value)
    else:
        s = clean_str(value)
        if not s:
            return None
        ts = pd.to_datetime(s, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz or "UTC").tz_localize(None)
    return ts


def parse_record(row: Mapping[str, Any]) -> WorkRecord:
    values: Dict[str, Any] = {}
    for key, raw in row.items():
        name = RECORD_COLUMNS.get(str(key))
        if name and name not in values:
            values[name] = raw
    return WorkRecord(
        id=parse_int(values.get("id")),
        row_index=parse_int(values.get("row_index")),
        system=clean_str(values.get("system")),
        sub_module=clean_str(values.get("sub_module")),
        handler_name=clean_str(values.get("handler_name")),
        questioner=clean_str(values.get("questioner")),
        question_type=clean_str(values.get("question_type")),
        question_date=clean_str(values.get("question_date")),
        closed_date=clean_str(values.get("closed_date")),
        difficulty=parse_level_or_text(values.get("difficulty")),
        priority=parse_level_or_text(values.get("priority")),
        is_done=parse_done(values.get("is_done")),
        minutes=parse_minutes(values.get("minutes")),
        note=clean_str(values.get("note")),
        created_at=clean_str(values.get("created_at")),
    )


def parse_records(rows: Iterable[object]) -> List[WorkRecord]:
    out: List[WorkRecord] = []
    for idx, row in enumerate(rows or []):
        if not isinstance(row, Mapping):
            logger.warning("Skipping record row %d: expected a mapping, got %s", idx, type(row).__name__)
            continue
        out.append(parse_record(row))
    return out


def parse_level_or_text(value: object) -> Union[Level, str, None]:
    """A Level when recognised, else the raw text (kept so it never reads as blank)."""
    return parse_level(value) or clean_str(value) or None


def _level_value(value: object) -> str:
    level = parse_level(value)
    return level.value if level is not None else clean_str(value)


def records_frame(records: Iterable[WorkRecord], tz: Optional[str] = None) -> pd.DataFrame:
    """Flatten records into a typed frame, one row per record in input order.

    Fields are re-coerced here so records built by hand (tests, forms) degrade
    the same way parsed rows do.
    """
    rows = []
    for rec in records:
        rows.append(
            {
                "id": getattr(rec, "id", None),
                "row_index": getattr(rec, "row_index", None),
                "system": clean_str(getattr(rec, "system", "")),
                "sub_module": clean_str(getattr(rec, "sub_module", "")),
                "handler_name": clean_str(getattr(rec, "handler_name", "")),
                "questioner": clean_str(getattr(rec, "questioner", "")),
                "question_type": clean_str(getattr(rec, "question_type", "")),
                "question_date": clean_str(getattr(rec, "question_date", "")),
                "question_ts": parse_timestamp(getattr(rec, "question_date", None), tz),
                "closed_date": clean_str(getattr(rec, "closed_date", "")),
                "difficulty": _level_value(getattr(rec, "difficulty", None)),
                "priority": _level_value(getattr(rec, "priority", None)),
                "is_done": parse_done(getattr(rec, "is_done", False)),
                "minutes": parse_minutes(getattr(rec, "minutes", None)),
                "note": clean_str(getattr(rec, "note", "")),
                "created_at": clean_str(getattr(rec, "created_at", "")),
            }
        )
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["question_ts"] = pd.to_datetime(df["question_ts"], errors="coerce")
    df["is_done"] = df["is_done"].astype(bool)
    df["minutes"] = pd.to_numeric(df["minutes"], errors="coerce").fillna(0).astype(float)
    return df
