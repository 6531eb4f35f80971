from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from worklog.data import clean_str, parse_done, parse_int


ADMIN_SHEETS = ("users", "systems", "subModules", "questionTypes", "employees")
READ_ONLY_COLUMNS = frozenset({"id", "_rowIndex"})


@dataclass(frozen=True)
class User:
    id: str
    emp_id: str = ""
    name: str = ""
    login_id: str = ""
    is_admin: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "User":
        return cls(
            id=clean_str(raw.get("id")),
            emp_id=clean_str(raw.get("empId", raw.get("emp_id"))),
            name=clean_str(raw.get("name")),
            login_id=clean_str(raw.get("loginId", raw.get("login_id"))),
            is_admin=parse_done(raw.get("isAdmin", raw.get("is_admin"))),
        )


@dataclass(frozen=True)
class System:
    id: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class SubModule:
    id: str
    parent_system: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class QuestionType:
    id: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class Employee:
    id: str
    emp_id: str
    name: str


def _order(raw: Mapping[str, Any]) -> int:
    return parse_int(raw.get("order")) or 0


@dataclass(frozen=True)
class FormOptions:
    systems: List[System] = field(default_factory=list)
    sub_modules: List[SubModule] = field(default_factory=list)
    question_types: List[QuestionType] = field(default_factory=list)
    employees: List[Employee] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "FormOptions":
        return cls(
            systems=sorted(
                (System(clean_str(r.get("id")), clean_str(r.get("name")), _order(r)) for r in raw.get("systems") or []),
                key=lambda s: s.order,
            ),
            sub_modules=[
                SubModule(
                    clean_str(r.get("id")),
                    clean_str(r.get("parentSystem", r.get("parent_system"))),
                    clean_str(r.get("name")),
                    _order(r),
                )
                for r in raw.get("subModules", raw.get("sub_modules")) or []
            ],
            question_types=sorted(
                (
                    QuestionType(clean_str(r.get("id")), clean_str(r.get("name")), _order(r))
                    for r in raw.get("questionTypes", raw.get("question_types")) or []
                ),
                key=lambda q: q.order,
            ),
            employees=[
                Employee(clean_str(r.get("id")), clean_str(r.get("empId", r.get("emp_id"))), clean_str(r.get("name")))
                for r in raw.get("employees") or []
            ],
        )

    def sub_modules_for(self, system: str) -> List[SubModule]:
        return sorted((sm for sm in self.sub_modules if sm.parent_system == system), key=lambda sm: sm.order)


# ---------------- admin sheets (schema-less rows) ----------------
@dataclass(frozen=True)
class AdminRow:
    row_index: int
    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> Optional[int]:
        return parse_int(self.values.get("id"))


@dataclass(frozen=True)
class AdminSheet:
    headers: List[str] = field(default_factory=list)
    rows: List[AdminRow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AdminSheet":
        rows: List[AdminRow] = []
        for item in raw.get("data") or []:
            if not isinstance(item, Mapping):
                continue
            row_index = parse_int(item.get("_rowIndex"))
            if row_index is None:
                continue
            rows.append(AdminRow(row_index, {k: v for k, v in item.items() if k != "_rowIndex"}))
        return cls(headers=[str(h) for h in raw.get("headers") or []], rows=rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": list(self.headers),
            "data": [{"_rowIndex": r.row_index, **r.values} for r in self.rows],
        }


def validate_sheet(sheet: str) -> str:
    if sheet not in ADMIN_SHEETS:
        raise KeyError(f"Unknown admin sheet: {sheet!r}")
    return sheet


def editable_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop read-only columns before an add/save round trip."""
    return {k: v for k, v in values.items() if k not in READ_ONLY_COLUMNS}
