from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from worklog.forms import WorkItemForm


class FilterCriteriaModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    person: str = ""
    system: str = ""
    sub_module: str = ""
    questioner: str = ""
    question_type: str = ""
    difficulty: str = ""
    priority: str = ""
    is_done: Optional[bool] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class WorkItemModel(WorkItemForm):
    pass


class AdminRowModel(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    headers: List[str] = Field(default_factory=list)
