"""
Todoist activity event model
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, field_validator


class Event(BaseModel):
    """Remote activity record"""
    
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    id: str
    object_type: str  # item, note, project
    object_id: str
    parent_item_id: Optional[str] = None
    event_type: str  # added, updated, completed, uncompleted, deleted
    event_date: Optional[str] = None
    extra_data: Dict[str, Any] = {}
    
    @field_validator("id", "object_id", "parent_item_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if value is None:
            return value
        return str(value)
    
    @field_validator("extra_data", mode="before")
    @classmethod
    def _default_extra_data(cls, value):
        return value or {}
    
    @property
    def client(self) -> str:
        return str(self.extra_data.get("client") or "")
    
    @property
    def is_item_event(self) -> bool:
        return self.object_type == "item"
    
    @property
    def is_note_event(self) -> bool:
        return self.object_type == "note"
    
    @property
    def is_project_event(self) -> bool:
        return self.object_type == "project"
