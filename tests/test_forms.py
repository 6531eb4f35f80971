import pytest
from pydantic import ValidationError

from worklog.forms import WorkItemForm
from worklog.records import ChoiceError, Known, Level, Other, resolve_choice, resolve_sub_module


def _form(**overrides):
    data = {
        "system": "ERP",
        "subModule": "採購模組",
        "questionType": "電話",
        "questioner": "陳一心",
        "questionDate": "2024-06-01T09:00",
    }
    data.update(overrides)
    return WorkItemForm(**data)


class TestChoices:
    def test_known(self):
        assert resolve_choice("電話") == Known("電話")

    def test_other_needs_text(self):
        assert resolve_choice("其它", " LINE ") == Other("LINE")
        with pytest.raises(ChoiceError):
            resolve_choice("其他", "  ")

    def test_blank_selection(self):
        with pytest.raises(ChoiceError):
            resolve_choice("", "")

    def test_other_system_makes_sub_module_free_text(self):
        assert resolve_sub_module("其它", "", "自建系統") == Other("自建系統")
        with pytest.raises(ChoiceError):
            resolve_sub_module("其它", "", "")
        assert resolve_sub_module("ERP", "庫存管理") == Known("庫存管理")


class TestWorkItemForm:
    def test_defaults(self):
        form = _form()
        assert form.difficulty is Level.MID
        assert form.priority is Level.MID
        assert form.is_done is False
        assert form.minutes is None

    def test_required_fields(self):
        with pytest.raises(ValidationError):
            _form(questioner="")
        with pytest.raises(ValidationError):
            WorkItemForm(system="ERP")

    def test_level_labels_and_blank_minutes(self):
        form = _form(difficulty="高", priority="low", minutes="")
        assert form.difficulty is Level.HIGH
        assert form.priority is Level.LOW
        assert form.minutes is None

    def test_negative_minutes_rejected(self):
        with pytest.raises(ValidationError):
            _form(minutes=-1)

    def test_to_record_resolves_other_and_handler(self):
        form = _form(questionType="其它", questionTypeText="LINE", isDone=True, closedDate="2024-06-01T10:00", minutes=15)
        rec = form.to_record("張小明", row_index=9)
        assert rec.handler_name == "張小明"
        assert rec.question_type == "LINE"
        assert rec.sub_module == "採購模組"
        assert rec.closed_date == "2024-06-01T10:00"
        assert rec.minutes == 15
        assert rec.row_index == 9

    def test_closed_date_dropped_when_open(self):
        rec = _form(closedDate="2024-06-01T10:00").to_record("Amy")
        assert rec.closed_date == ""

    def test_other_without_text_raises(self):
        with pytest.raises(ChoiceError):
            _form(questionType="其它").to_record("Amy")
