"""
Response models for remote calls and error reporting
"""

from enum import Enum
from typing import Optional, Dict, Any, List, Set
from pydantic import BaseModel


class TaskUpdateStatus(str, Enum):
    """Outcome of a remote task update"""
    OK = "ok"
    TASK_NOT_FOUND = "task_not_found"
    FATAL = "fatal"


class TaskUpdateResult(BaseModel):
    """Remote update outcome with the returned task payload"""
    status: TaskUpdateStatus
    task: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    
    @property
    def ok(self) -> bool:
        return self.status == TaskUpdateStatus.OK


class ErrorResponse(BaseModel):
    """Error response model"""
    message: str
    error_code: Optional[str] = None
    details: Optional[dict] = None


class TaskDiff(BaseModel):
    """Field-level difference between a parsed line and its cached task"""
    payload: Dict[str, Any] = {}
    fields: Set[str] = set()
    pushable: Set[str] = set()
    cache_only: Set[str] = set()
    changes: List[str] = []
    section_id: Optional[str] = None
    status_changed: bool = False
    content_changed: bool = False
    labels_changed: bool = False
    due_date_changed: bool = False
    due_time_changed: bool = False
    due_datetime_changed: bool = False
    duration_changed: bool = False
    section_changed: bool = False
    project_changed: bool = False
    parent_changed: bool = False
    deadline_changed: bool = False
    priority_changed: bool = False
    
    @property
    def has_changes(self) -> bool:
        return bool(self.fields)
    
    @property
    def has_update_payload(self) -> bool:
        return bool(self.payload)
