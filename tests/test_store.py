import pytest
import requests

from worklog.config import Settings
from worklog.forms import WorkItemForm
from worklog.records import Level, WorkRecord
from worklog.reference import User
from worklog.store import MemoryStore, SheetProxyStore, StoreError, load_records, make_store


class FakeResponse:
    def __init__(self, payload=None, *, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else ""

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.payload is None:
            raise ValueError("no JSON")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _reply(self):
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", params))
        return self._reply()

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", json))
        return self._reply()


def _proxy(response=None, error=None):
    session = FakeSession(response, error)
    return SheetProxyStore("https://example.invalid/exec", timeout=3, session=session), session


class TestSheetProxyStore:
    def test_fetch_records_sends_owner_and_privilege(self):
        store, session = _proxy(FakeResponse([{"_rowIndex": 2, "系統別": "ERP", "是否完成": "是"}]))
        recs = store.fetch_records("Amy", False)
        assert session.calls == [("GET", {"action": "getRecords", "handler": "Amy", "isAdmin": "false"})]
        assert recs[0].system == "ERP"
        assert recs[0].is_done is True

    def test_users(self):
        store, _ = _proxy(FakeResponse([{"id": 1, "name": "Amy", "isAdmin": True}]))
        assert store.get_users() == [User(id="1", name="Amy", is_admin=True)]

    def test_transport_failure_is_a_store_error(self):
        store, _ = _proxy(error=requests.ConnectionError("down"))
        with pytest.raises(StoreError) as info:
            store.get_users()
        assert info.value.retryable

    def test_http_error_status(self):
        store, _ = _proxy(FakeResponse([], status_code=500))
        with pytest.raises(StoreError):
            store.get_form_options()

    def test_non_json_body(self):
        store, _ = _proxy(FakeResponse(None, text="<html>login</html>"))
        with pytest.raises(StoreError, match="not JSON"):
            store.get_users()

    def test_unexpected_shape(self):
        store, _ = _proxy(FakeResponse({"oops": 1}))
        with pytest.raises(StoreError):
            store.fetch_records("Amy", True)

    def test_update_rejected_reply_raises_with_message(self):
        store, session = _proxy(FakeResponse({"status": "error", "message": "row locked"}))
        with pytest.raises(StoreError, match="row locked"):
            store.update_record(4, WorkRecord(system="ERP", difficulty=Level.LOW))
        body = session.calls[0][1]
        assert body["action"] == "updateRecord"
        assert body["rowIndex"] == 4
        assert body["rowData"]["difficulty"] == "LOW"

    def test_append_does_not_require_ok_status(self):
        store, session = _proxy(FakeResponse({"result": "appended"}))
        store.append_record(WorkRecord(system="ERP", handler_name="Amy"))
        assert session.calls[0][1]["action"] == "appendRecord"
        assert session.calls[0][1]["handler"] == "Amy"

    def test_admin_write_drops_read_only_columns(self):
        store, session = _proxy(FakeResponse({"status": "ok"}))
        store.save_admin_row("systems", 3, {"id": 2, "_rowIndex": 3, "系統別": "CRM"}, ["id", "系統別"])
        assert session.calls[0][1]["rowData"] == {"系統別": "CRM"}

    def test_unknown_admin_sheet(self):
        store, session = _proxy(FakeResponse({"status": "ok"}))
        with pytest.raises(KeyError):
            store.delete_admin_row("records", 2)
        assert session.calls == []


class TestMemoryStore:
    def test_non_admin_sees_own_records_only(self, memory_store):
        own = memory_store.fetch_records("李大華", False)
        assert {r.handler_name for r in own} == {"李大華"}
        assert len(memory_store.fetch_records("李大華", True)) == 4

    def test_append_assigns_next_position(self, memory_store):
        memory_store.append_record(WorkRecord(system="OA", handler_name="Amy"))
        added = memory_store.fetch_records("Amy", False)
        assert len(added) == 1
        assert added[0].row_index == 6
        assert added[0].id == 5

    def test_update_missing_row(self, memory_store):
        with pytest.raises(StoreError):
            memory_store.update_record(99, WorkRecord())

    def test_update_keeps_id(self, memory_store):
        memory_store.update_record(3, WorkRecord(system="CRM", handler_name="李大華"))
        rec = next(r for r in memory_store.fetch_records("", True) if r.row_index == 3)
        assert rec.system == "CRM"
        assert rec.id == 2

    def test_admin_crud(self, memory_store):
        sheet = memory_store.get_admin_sheet("systems")
        assert sheet.headers[0] == "id"
        before = len(sheet.rows)
        memory_store.add_admin_row("systems", {"系統別": "HR", "是否開啟": "Y", "排序": 5}, sheet.headers)
        sheet = memory_store.get_admin_sheet("systems")
        assert len(sheet.rows) == before + 1
        new_row = sheet.rows[-1]
        assert new_row.values["系統別"] == "HR"
        memory_store.save_admin_row("systems", new_row.row_index, {"id": 999, "系統別": "HRM"}, sheet.headers)
        saved = memory_store.get_admin_sheet("systems").rows[-1]
        assert saved.values["系統別"] == "HRM"
        assert saved.id == new_row.id
        memory_store.delete_admin_row("systems", new_row.row_index)
        assert len(memory_store.get_admin_sheet("systems").rows) == before
        with pytest.raises(StoreError):
            memory_store.delete_admin_row("systems", new_row.row_index)


def test_load_records_uses_the_user_role(memory_store):
    admin = User(id="1", name="張小明", is_admin=True)
    staff = User(id="3", name="王美麗")
    assert len(load_records(memory_store, admin)) == 4
    assert [r.id for r in load_records(memory_store, staff)] == [4]


def test_load_records_propagates_store_errors():
    store, _ = _proxy(error=requests.Timeout("slow"))
    with pytest.raises(StoreError):
        load_records(store, User(id="1", name="Amy"))


def test_make_store():
    assert isinstance(make_store(Settings()), MemoryStore)
    assert isinstance(make_store(Settings(store_url="https://example.invalid/exec")), SheetProxyStore)


def test_edited_form_replaces_the_row_on_refetch(memory_store):
    staff = User(id="2", name="李大華")
    original = next(r for r in load_records(memory_store, staff) if r.row_index == 4)
    form = WorkItemForm(
        system=original.system,
        sub_module=original.sub_module,
        question_type=original.question_type,
        questioner=original.questioner,
        question_date=original.question_date,
        difficulty=original.difficulty,
        is_done=True,
        closed_date="2025-01-03T09:00",
        minutes=45,
    )
    memory_store.update_record(4, form.to_record(staff.name, row_index=4))

    edited = next(r for r in load_records(memory_store, staff) if r.row_index == 4)
    assert edited.id == original.id
    assert edited.is_done is True
    assert edited.minutes == 45
    assert edited.closed_date == "2025-01-03T09:00"
    assert len(load_records(memory_store, staff)) == 2
