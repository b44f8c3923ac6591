"""
Task, file metadata and catalogue models
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict


class TaskState(str, Enum):
    """Local lifecycle of a cached task"""
    SYNCED = "synced"
    # Remote returned not-found; the text is flagged and the sync tag stripped
    PENDING_REMOVAL = "pending_removal"
    # Detached from its line for a resync; purged at the end of the cycle
    LOCALLY_ORPHANED = "locally_orphaned"


class Duration(BaseModel):
    """Task duration"""
    amount: int
    unit: str = "minute"  # minute or day


class Task(BaseModel):
    """Task model"""
    
    model_config = ConfigDict(populate_by_name=True)
    
    id: str = ""
    content: str = ""
    description: str = ""
    project_id: str = ""
    section_id: Optional[str] = None
    parent_id: Optional[str] = None
    due_date: Optional[str] = None
    due_datetime: Optional[str] = None
    labels: List[str] = []
    priority: int = 1
    duration: Optional[Duration] = None
    deadline_date: Optional[str] = None
    is_completed: bool = Field(False, alias="isCompleted")
    path: str = ""
    state: TaskState = TaskState.SYNCED
    
    @property
    def due_time(self) -> Optional[str]:
        """Time part (HH:MM:SS) of due_datetime"""
        if self.due_datetime and len(self.due_datetime) >= 19:
            return self.due_datetime[11:19]
        return None
    
    @classmethod
    def from_api(cls, data: Dict[str, Any], path: str = "") -> "Task":
        """
        Build task from a Todoist API payload
        
        Args:
            data: Task JSON returned by the API
            path: Owning document path
            
        Returns:
            Task instance
        """
        due = data.get("due") or {}
        due_date = None
        due_datetime = None
        raw_date = due.get("date")
        if raw_date:
            if "T" in raw_date:
                due_datetime = raw_date[:19]
                due_date = raw_date[:10]
            else:
                due_date = raw_date
        if due.get("datetime") and not due_datetime:
            due_datetime = due["datetime"][:19]
            due_date = due_date or due["datetime"][:10]
        
        duration = None
        raw_duration = data.get("duration")
        if raw_duration and raw_duration.get("amount"):
            duration = Duration(
                amount=int(raw_duration["amount"]),
                unit=raw_duration.get("unit") or "minute",
            )
        
        deadline = data.get("deadline") or {}
        
        return cls(
            id=str(data.get("id", "")),
            content=data.get("content", ""),
            description=data.get("description", "") or "",
            project_id=str(data.get("project_id") or ""),
            section_id=data.get("section_id") or None,
            parent_id=data.get("parent_id") or None,
            due_date=due_date,
            due_datetime=due_datetime,
            labels=list(data.get("labels") or []),
            priority=int(data.get("priority") or 1),
            duration=duration,
            deadline_date=deadline.get("date") or None,
            is_completed=bool(data.get("checked", data.get("is_completed", False))),
            path=path,
        )


class FileMetadata(BaseModel):
    """Per-document task bookkeeping"""
    
    model_config = ConfigDict(populate_by_name=True)
    
    task_ids: List[str] = Field(default_factory=list, alias="todoistTasks")
    task_count: int = Field(0, alias="todoistCount")
    default_project_id: Optional[str] = Field(None, alias="defaultProjectId")


class Project(BaseModel):
    """Todoist project"""
    
    model_config = ConfigDict(extra="ignore")
    
    id: str
    name: str


class Section(BaseModel):
    """Todoist section"""
    
    model_config = ConfigDict(extra="ignore")
    
    id: str
    name: str
    project_id: str
