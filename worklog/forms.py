from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from worklog.data import parse_level
from worklog.records import Level, WorkRecord, resolve_choice, resolve_sub_module


class WorkItemForm(BaseModel):
    """Submitted / edited work item.

    ``sub_module_text`` and ``question_type_text`` carry the free text used when
    the "other" option is picked; ``to_record`` resolves them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    system: str = Field(min_length=1)
    sub_module: str = ""
    sub_module_text: str = ""
    question_type: str = Field(min_length=1)
    question_type_text: str = ""
    questioner: str = Field(min_length=1)
    question_date: str = Field(min_length=1)
    difficulty: Level = Level.MID
    priority: Level = Level.MID
    is_done: bool = False
    closed_date: str = ""
    minutes: Optional[int] = Field(default=None, ge=0)
    note: str = ""

    @field_validator("difficulty", "priority", mode="before")
    @classmethod
    def _level(cls, value: object) -> object:
        return parse_level(value) or value

    @field_validator("minutes", mode="before")
    @classmethod
    def _blank_minutes(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    def to_record(self, handler_name: str, *, row_index: Optional[int] = None, record_id: Optional[int] = None) -> WorkRecord:
        sub_module = resolve_sub_module(self.system, self.sub_module, self.sub_module_text)
        question_type = resolve_choice(self.question_type, self.question_type_text, field="question_type")
        return WorkRecord(
            id=record_id,
            row_index=row_index,
            system=self.system.strip(),
            sub_module=sub_module.label,
            handler_name=handler_name,
            questioner=self.questioner.strip(),
            question_type=question_type.label,
            question_date=self.question_date.strip(),
            closed_date=self.closed_date.strip() if self.is_done else "",
            difficulty=self.difficulty,
            priority=self.priority,
            is_done=self.is_done,
            minutes=self.minutes or None,
            note=self.note.strip(),
        )
