from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class Level(str, Enum):
    HIGH = "HIGH"
    MID = "MID"
    LOW = "LOW"

    @property
    def label(self) -> str:
        return LEVEL_LABELS[self]


# Fixed display / bucketing order, not alphabetical.
LEVEL_ORDER = (Level.HIGH, Level.MID, Level.LOW)
LEVEL_LABELS: Dict[Level, str] = {Level.HIGH: "高", Level.MID: "中", Level.LOW: "低"}

OTHER_LABELS = frozenset({"其它", "其他", "other"})


def _level_text(value: Union[Level, str, None]) -> str:
    if isinstance(value, Level):
        return value.value
    return str(value) if value else Level.MID.value


@dataclass(frozen=True)
class WorkRecord:
    """One logged work item as read from the record sheet.

    Values are kept close to the sheet: dates stay as the strings the store
    returned and are parsed by the engines, so a malformed cell only degrades
    the aggregates that need it.
    """

    id: Optional[int] = None
    row_index: Optional[int] = None
    system: str = ""
    sub_module: str = ""
    handler_name: str = ""
    questioner: str = ""
    question_type: str = ""
    question_date: str = ""
    closed_date: str = ""
    # Unrecognised sheet text is kept as a plain string.
    difficulty: Union[Level, str, None] = None
    priority: Union[Level, str, None] = None
    is_done: bool = False
    minutes: Optional[int] = None
    note: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["difficulty"] = self.difficulty.value if isinstance(self.difficulty, Level) else self.difficulty
        out["priority"] = self.priority.value if isinstance(self.priority, Level) else self.priority
        return out

    def to_payload(self) -> Dict[str, Any]:
        """Store payload for appendRecord / updateRecord (camelCase, empty optionals dropped)."""
        payload: Dict[str, Any] = {
            "system": self.system,
            "subModule": self.sub_module,
            "handler": self.handler_name,
            "questioner": self.questioner,
            "difficulty": _level_text(self.difficulty),
            "priority": _level_text(self.priority),
            "questionDate": self.question_date,
            "questionType": self.question_type,
            "isDone": bool(self.is_done),
        }
        if self.closed_date:
            payload["closedDate"] = self.closed_date
        if self.minutes:
            payload["minutes"] = self.minutes
        if self.note:
            payload["note"] = self.note
        return payload


# ---------------- "other" escape for category fields ----------------
class ChoiceError(ValueError):
    pass


@dataclass(frozen=True)
class Known:
    value: str

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class Other:
    text: str

    @property
    def label(self) -> str:
        return self.text


Choice = Union[Known, Other]


def is_other(value: object) -> bool:
    return str(value or "").strip().lower() in OTHER_LABELS


def resolve_choice(selected: object, free_text: object = "", *, field: str = "value") -> Choice:
    """Turn a picked option plus its optional free text into a tagged choice."""
    picked = str(selected or "").strip()
    if is_other(picked):
        text = str(free_text or "").strip()
        if not text:
            raise ChoiceError(f"{field}: a description is required when 'other' is selected")
        return Other(text)
    if not picked:
        raise ChoiceError(f"{field} is required")
    return Known(picked)


def resolve_sub_module(system: object, selected: object, free_text: object = "") -> Choice:
    # An "other" system has no sub-module list, so the sub-module is always free text.
    if is_other(system):
        text = str(free_text or selected or "").strip()
        if not text:
            raise ChoiceError("sub_module: a name is required when the system is 'other'")
        return Other(text)
    return resolve_choice(selected, free_text, field="sub_module")
