import pytest

from worklog.records import Level, WorkRecord
from worklog.store import MemoryStore


@pytest.fixture
def records():
    return [
        WorkRecord(id=1, row_index=2, system="ERP", sub_module="採購模組", handler_name="Amy", questioner="Bob",
                   question_type="電話", question_date="2024-06-01T09:00:00", difficulty=Level.HIGH,
                   priority=Level.HIGH, is_done=True, minutes=30),
        WorkRecord(id=2, row_index=3, system="ERP", sub_module="庫存管理", handler_name="Ben", questioner="Cat",
                   question_type="Email", question_date="2024-06-01T23:30:00", difficulty=Level.MID,
                   priority=Level.LOW, is_done=True, minutes=50),
        WorkRecord(id=3, row_index=4, system="CRM", sub_module="客戶管理", handler_name="Amy", questioner="Bob",
                   question_type="Teams", question_date="2024-06-02T00:00:01", difficulty=Level.LOW,
                   priority=Level.HIGH, is_done=False),
        WorkRecord(id=4, row_index=5, system="", sub_module="", handler_name="Ben", questioner="Dan",
                   question_type="", question_date="not a date", difficulty=None,
                   priority=Level.MID, is_done=False, minutes=None),
    ]


@pytest.fixture
def memory_store():
    return MemoryStore()
