"""Record store clients.

``SheetProxyStore`` talks to the spreadsheet proxy (an Apps Script web app
that answers ``?action=...`` GETs and JSON POSTs). ``MemoryStore`` answers the
same calls from in-process sample data and is used when no proxy URL is set.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from worklog.config import Settings
from worklog.data import parse_records
from worklog.records import WorkRecord
from worklog.reference import AdminSheet, FormOptions, User, editable_values, validate_sheet


logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """A store call failed (transport, HTTP status, non-JSON body, or a non-ok reply)."""

    retryable = True


class RecordStore(Protocol):
    def get_users(self) -> List[User]: ...

    def get_form_options(self) -> FormOptions: ...

    def fetch_records(self, owner: str, is_privileged: bool) -> List[WorkRecord]: ...

    def append_record(self, record: WorkRecord) -> None: ...

    def update_record(self, row_index: int, record: WorkRecord) -> None: ...

    def get_admin_sheet(self, sheet: str) -> AdminSheet: ...

    def add_admin_row(self, sheet: str, values: Mapping[str, Any], headers: List[str]) -> None: ...

    def save_admin_row(self, sheet: str, row_index: int, values: Mapping[str, Any], headers: List[str]) -> None: ...

    def delete_admin_row(self, sheet: str, row_index: int) -> None: ...


class SheetProxyStore:
    def __init__(self, url: str, *, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    # ---- transport ----
    def _decode(self, resp: requests.Response, action: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"{action}: response is not JSON: {resp.text[:200]}") from exc

    def _get(self, action: str, **params: Any) -> Any:
        try:
            resp = self.session.get(self.url, params={"action": action, **params}, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Store GET %s failed: %s", action, exc)
            raise StoreError(f"{action} failed: {exc}") from exc
        return self._decode(resp, action)

    def _post(self, body: Dict[str, Any], *, require_ok: bool = True) -> Any:
        action = str(body.get("action"))
        try:
            resp = self.session.post(self.url, json=body, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Store POST %s failed: %s", action, exc)
            raise StoreError(f"{action} failed: {exc}") from exc
        result = self._decode(resp, action)
        if require_ok:
            status = result.get("status") if isinstance(result, dict) else None
            if status != "ok":
                message = result.get("message") if isinstance(result, dict) else None
                logger.warning("Store POST %s rejected: %s", action, message or result)
                raise StoreError(message or f"{action} failed")
        return result

    # ---- reads ----
    def get_users(self) -> List[User]:
        rows = self._get("getUsers")
        if not isinstance(rows, list):
            raise StoreError("getUsers: expected a list")
        return [User.from_dict(r) for r in rows if isinstance(r, Mapping)]

    def get_form_options(self) -> FormOptions:
        raw = self._get("getFormOptions")
        if not isinstance(raw, Mapping):
            raise StoreError("getFormOptions: expected an object")
        return FormOptions.from_dict(raw)

    def fetch_records(self, owner: str, is_privileged: bool) -> List[WorkRecord]:
        rows = self._get("getRecords", handler=owner, isAdmin="true" if is_privileged else "false")
        if not isinstance(rows, list):
            raise StoreError("getRecords: expected a list")
        return parse_records(rows)

    def get_admin_sheet(self, sheet: str) -> AdminSheet:
        raw = self._get("getAdminSheet", sheet=validate_sheet(sheet))
        if not isinstance(raw, Mapping):
            raise StoreError("getAdminSheet: expected an object")
        return AdminSheet.from_dict(raw)

    # ---- writes ----
    def append_record(self, record: WorkRecord) -> None:
        self._post({"action": "appendRecord", **record.to_payload()}, require_ok=False)

    def update_record(self, row_index: int, record: WorkRecord) -> None:
        self._post({"action": "updateRecord", "rowIndex": row_index, "rowData": record.to_payload()})

    def add_admin_row(self, sheet: str, values: Mapping[str, Any], headers: List[str]) -> None:
        self._post(
            {"action": "addAdminRow", "sheet": validate_sheet(sheet), "rowData": editable_values(values), "headers": headers}
        )

    def save_admin_row(self, sheet: str, row_index: int, values: Mapping[str, Any], headers: List[str]) -> None:
        self._post(
            {
                "action": "saveAdminRow",
                "sheet": validate_sheet(sheet),
                "rowIndex": row_index,
                "rowData": editable_values(values),
                "headers": headers,
            }
        )

    def delete_admin_row(self, sheet: str, row_index: int) -> None:
        self._post({"action": "deleteAdminRow", "sheet": validate_sheet(sheet), "rowIndex": row_index})


# ---------------- in-process store ----------------
SAMPLE_USERS = [
    {"id": "1", "empId": "E001", "name": "張小明", "loginId": "ming", "isAdmin": True},
    {"id": "2", "empId": "E002", "name": "李大華", "loginId": "hua", "isAdmin": False},
    {"id": "3", "empId": "E003", "name": "王美麗", "loginId": "meli", "isAdmin": False},
]

SAMPLE_OPTIONS = {
    "systems": [
        {"id": "1", "name": "ERP", "order": 1},
        {"id": "2", "name": "CRM", "order": 2},
        {"id": "3", "name": "OA", "order": 3},
        {"id": "4", "name": "其它", "order": 99},
    ],
    "subModules": [
        {"id": "1", "parentSystem": "ERP", "name": "採購模組", "order": 1},
        {"id": "2", "parentSystem": "ERP", "name": "庫存管理", "order": 2},
        {"id": "3", "parentSystem": "ERP", "name": "財務報表", "order": 3},
        {"id": "4", "parentSystem": "CRM", "name": "客戶管理", "order": 1},
        {"id": "5", "parentSystem": "CRM", "name": "業務追蹤", "order": 2},
        {"id": "6", "parentSystem": "OA", "name": "請假系統", "order": 1},
        {"id": "7", "parentSystem": "OA", "name": "公文流程", "order": 2},
    ],
    "questionTypes": [
        {"id": "1", "name": "電話", "order": 1},
        {"id": "2", "name": "Email", "order": 2},
        {"id": "3", "name": "現場", "order": 3},
        {"id": "4", "name": "Teams", "order": 4},
        {"id": "5", "name": "其它", "order": 99},
    ],
    "employees": [
        {"id": "1", "empId": "S001", "name": "陳一心"},
        {"id": "2", "empId": "S002", "name": "林二郎"},
        {"id": "3", "empId": "S003", "name": "黃三妹"},
        {"id": "4", "empId": "S004", "name": "吳四方"},
    ],
}

SAMPLE_RECORDS = [
    {"_rowIndex": 2, "id": 1, "系統別": "ERP", "子模組": "採購模組", "處理人員姓名": "張小明", "提問人員": "陳一心",
     "提問方式": "電話", "提問日期": "2024-12-30T09:15:00", "難度": "高", "優先權": "高", "是否完成": "是",
     "結案日期": "2024-12-30T11:00:00", "處理分鐘數": 90, "備註": ""},
    {"_rowIndex": 3, "id": 2, "系統別": "ERP", "子模組": "庫存管理", "處理人員姓名": "李大華", "提問人員": "林二郎",
     "提問方式": "Email", "提問日期": "2024-12-31T14:00:00", "難度": "中", "優先權": "低", "是否完成": "是",
     "結案日期": "2025-01-02T10:00:00", "處理分鐘數": 30, "備註": ""},
    {"_rowIndex": 4, "id": 3, "系統別": "CRM", "子模組": "客戶管理", "處理人員姓名": "李大華", "提問人員": "黃三妹",
     "提問方式": "Teams", "提問日期": "2025-01-02T08:30:00", "難度": "低", "優先權": "高", "是否完成": "否",
     "處理分鐘數": "", "備註": "等待回覆"},
    {"_rowIndex": 5, "id": 4, "系統別": "OA", "子模組": "請假系統", "處理人員姓名": "王美麗", "提問人員": "吳四方",
     "提問方式": "現場", "提問日期": "2025-01-02T16:45:00", "難度": "低", "優先權": "中", "是否完成": "是",
     "結案日期": "2025-01-02T17:00:00", "處理分鐘數": 15, "備註": ""},
]

SAMPLE_ADMIN_HEADERS = {
    "users": ["id", "使用者工號", "使用者姓名", "LOGIN ID", "是否啟用", "是否為管理者"],
    "systems": ["id", "系統別", "是否開啟", "排序"],
    "subModules": ["id", "父系統", "子模組", "是否開啟", "排序"],
    "questionTypes": ["id", "提問方式", "是否開啟", "排序"],
    "employees": ["id", "提問人工號", "提問人姓名", "是否開啟"],
}


def _sample_admin_sheets() -> Dict[str, Dict[int, Dict[str, Any]]]:
    return {
        "users": {
            2 + i: {"id": i + 1, "使用者工號": u["empId"], "使用者姓名": u["name"], "LOGIN ID": u["loginId"],
                    "是否啟用": "Y", "是否為管理者": "Y" if u["isAdmin"] else "N"}
            for i, u in enumerate(SAMPLE_USERS)
        },
        "systems": {
            2 + i: {"id": i + 1, "系統別": s["name"], "是否開啟": "Y", "排序": s["order"]}
            for i, s in enumerate(SAMPLE_OPTIONS["systems"])
        },
        "subModules": {
            2 + i: {"id": i + 1, "父系統": s["parentSystem"], "子模組": s["name"], "是否開啟": "Y", "排序": s["order"]}
            for i, s in enumerate(SAMPLE_OPTIONS["subModules"])
        },
        "questionTypes": {
            2 + i: {"id": i + 1, "提問方式": q["name"], "是否開啟": "Y", "排序": q["order"]}
            for i, q in enumerate(SAMPLE_OPTIONS["questionTypes"])
        },
        "employees": {
            2 + i: {"id": i + 1, "提問人工號": e["empId"], "提問人姓名": e["name"], "是否開啟": "Y"}
            for i, e in enumerate(SAMPLE_OPTIONS["employees"])
        },
    }


class MemoryStore:
    # Sheet rows start at 2; row 1 holds the headers.
    FIRST_ROW = 2

    def __init__(
        self,
        records: Optional[List[WorkRecord]] = None,
        users: Optional[List[User]] = None,
        options: Optional[FormOptions] = None,
    ):
        self._records: List[WorkRecord] = list(records) if records is not None else parse_records(SAMPLE_RECORDS)
        self._users = list(users) if users is not None else [User.from_dict(u) for u in SAMPLE_USERS]
        self._options = options or FormOptions.from_dict(SAMPLE_OPTIONS)
        self._sheets = _sample_admin_sheets()

    def get_users(self) -> List[User]:
        return list(self._users)

    def get_form_options(self) -> FormOptions:
        return self._options

    def fetch_records(self, owner: str, is_privileged: bool) -> List[WorkRecord]:
        if is_privileged:
            return list(self._records)
        return [r for r in self._records if r.handler_name == owner]

    def append_record(self, record: WorkRecord) -> None:
        row_index = max([r.row_index or 0 for r in self._records] + [self.FIRST_ROW - 1]) + 1
        next_id = max([r.id or 0 for r in self._records] + [0]) + 1
        self._records.append(replace(record, id=next_id, row_index=row_index))

    def update_record(self, row_index: int, record: WorkRecord) -> None:
        for idx, existing in enumerate(self._records):
            if existing.row_index == row_index:
                self._records[idx] = replace(record, id=existing.id, row_index=row_index)
                return
        raise StoreError(f"updateRecord: no record at row {row_index}")

    def get_admin_sheet(self, sheet: str) -> AdminSheet:
        rows = self._sheets[validate_sheet(sheet)]
        return AdminSheet.from_dict(
            {"headers": SAMPLE_ADMIN_HEADERS[sheet], "data": [{"_rowIndex": k, **v} for k, v in sorted(rows.items())]}
        )

    def add_admin_row(self, sheet: str, values: Mapping[str, Any], headers: List[str]) -> None:
        rows = self._sheets[validate_sheet(sheet)]
        row_index = max(list(rows) + [self.FIRST_ROW - 1]) + 1
        next_id = max([int(v.get("id") or 0) for v in rows.values()] + [0]) + 1
        rows[row_index] = {"id": next_id, **{h: values.get(h, "") for h in headers if h not in ("id", "_rowIndex")}}

    def save_admin_row(self, sheet: str, row_index: int, values: Mapping[str, Any], headers: List[str]) -> None:
        rows = self._sheets[validate_sheet(sheet)]
        if row_index not in rows:
            raise StoreError(f"saveAdminRow: no row {row_index} in {sheet}")
        rows[row_index].update(editable_values({h: values[h] for h in headers if h in values}))

    def delete_admin_row(self, sheet: str, row_index: int) -> None:
        rows = self._sheets[validate_sheet(sheet)]
        if rows.pop(row_index, None) is None:
            raise StoreError(f"deleteAdminRow: no row {row_index} in {sheet}")


def make_store(settings: Settings) -> RecordStore:
    if settings.store_url:
        return SheetProxyStore(settings.store_url, timeout=settings.store_timeout)
    logger.info("WORKLOG_STORE_URL not set; using the in-memory sample store")
    return MemoryStore()


def load_records(store: RecordStore, user: User) -> List[WorkRecord]:
    """Fetch the records visible to ``user``: everything for admins, own records otherwise."""
    try:
        return store.fetch_records(user.name, user.is_admin)
    except StoreError:
        logger.warning("Could not load records for %s", user.name)
        raise
