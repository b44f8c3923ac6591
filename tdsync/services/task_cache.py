"""
Task cache service for storing the last synced state of every task
"""

import json
import re
from typing import Optional, Dict, List, Iterable
from pathlib import Path
from tdsync.config.settings import settings
from tdsync.models.event import Event
from tdsync.models.task import Task, TaskState, FileMetadata, Project, Section
from tdsync.utils.logger import logger


class TaskCacheService:
    """
    Service for caching synced tasks using a JSON file
    
    The file holds the tasks, processed events, per-document metadata and
    the project and section catalogues. Every mutation is written through
    to disk.
    """
    
    def __init__(self, cache_file: Optional[str] = None, stale_id_pattern: Optional[str] = None):
        """
        Initialize task cache service
        
        Args:
            cache_file: Path to cache file (optional, uses settings)
            stale_id_pattern: Regex for identifiers from the old id format
        """
        if cache_file is None:
            cache_file = settings.CACHE_FILE_PATH
        self.cache_file = Path(cache_file)
        self.logger = logger
        self._stale_id_re = re.compile(stale_id_pattern or settings.STALE_TASK_ID_PATTERN)
        self._tasks: Dict[str, Task] = {}
        self._events: List[Event] = []
        self._event_ids: set = set()
        self._file_metadata: Dict[str, FileMetadata] = {}
        self._projects: List[Project] = []
        self._sections: List[Section] = []
        self._load_cache()
    
    def _load_cache(self):
        """Load cache from file"""
        try:
            if not self.cache_file.exists():
                return
            with open(self.cache_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self._tasks = {}
            for item in data.get("tasks", []):
                task = Task.model_validate(item)
                self._tasks[task.id] = task
            self._events = [Event.model_validate(item) for item in data.get("events", [])]
            self._event_ids = {event.id for event in self._events}
            self._file_metadata = {
                path: FileMetadata.model_validate(item)
                for path, item in data.get("fileMetadata", {}).items()
            }
            self._projects = [Project.model_validate(item) for item in data.get("projects", [])]
            self._sections = [Section.model_validate(item) for item in data.get("sections", [])]
            self.logger.debug(
                f"[TaskCache] Loaded {len(self._tasks)} tasks and "
                f"{len(self._file_metadata)} documents from cache"
            )
        except Exception as e:
            self.logger.warning(f"[TaskCache] Failed to load cache: {e}")
    
    def _save_cache(self):
        """Save cache to file"""
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        except Exception as e:
            self.logger.warning(f"[TaskCache] Failed to save cache: {e}. Using in-memory cache only.")
    
    def to_dict(self) -> Dict:
        """Serializable cache structure"""
        return {
            "tasks": [task.model_dump(mode="json", by_alias=True) for task in self._tasks.values()],
            "events": [event.model_dump(mode="json") for event in self._events],
            "fileMetadata": {
                path: metadata.model_dump(mode="json", by_alias=True, exclude_none=True)
                for path, metadata in self._file_metadata.items()
            },
            "projects": [project.model_dump(mode="json") for project in self._projects],
            "sections": [section.model_dump(mode="json") for section in self._sections],
        }
    
    # Tasks
    
    def load_task(self, task_id: str) -> Optional[Task]:
        """
        Get task from cache
        
        Args:
            task_id: Task ID
            
        Returns:
            Copy of the cached task or None
        """
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None
    
    def load_tasks(self) -> List[Task]:
        return [task.model_copy(deep=True) for task in self._tasks.values()]
    
    def known_task_ids(self) -> set:
        """Ids of tasks that are still tracked (orphans excluded)"""
        return {
            task_id for task_id, task in self._tasks.items()
            if task.state != TaskState.LOCALLY_ORPHANED
        }
    
    def save_task(self, task: Task):
        """
        Insert or replace a task
        
        Args:
            task: Task with a remote id
        """
        if not task.id:
            raise ValueError("Cannot cache a task without id")
        self._tasks[task.id] = task.model_copy(deep=True)
        self._save_cache()
        self.logger.debug(f"[TaskCache] Cached task {task.id}: {task.content}")
    
    def update_task_fields(self, task_id: str, **fields):
        """
        Update specific fields of a cached task
        
        Args:
            task_id: Task ID
            **fields: Field values to set
        """
        task = self._tasks.get(task_id)
        if task is None:
            self.logger.warning(f"[TaskCache] Task {task_id} not found in cache, cannot update {list(fields)}")
            return
        self._tasks[task_id] = task.model_copy(update=fields)
        self._save_cache()
        self.logger.debug(f"[TaskCache] Updated {list(fields)} for task {task_id}")
    
    def close_task(self, task_id: str):
        """Mark task as completed in cache"""
        self.update_task_fields(task_id, is_completed=True)
    
    def reopen_task(self, task_id: str):
        """Mark task as not completed in cache"""
        self.update_task_fields(task_id, is_completed=False)
    
    def set_task_state(self, task_id: str, state: TaskState):
        self.update_task_fields(task_id, state=state)
    
    def delete_tasks(self, task_ids: Iterable[str]):
        removed = [task_id for task_id in task_ids if self._tasks.pop(task_id, None) is not None]
        if removed:
            self._save_cache()
            self.logger.debug(f"[TaskCache] Deleted tasks from cache: {removed}")
    
    def purge_orphaned_tasks(self) -> List[str]:
        """
        Drop tasks detached from their lines
        
        Returns:
            Purged task ids
        """
        orphaned = [
            task_id for task_id, task in self._tasks.items()
            if task.state == TaskState.LOCALLY_ORPHANED
        ]
        self.delete_tasks(orphaned)
        return orphaned
    
    def is_stale_task_id(self, task_id: str) -> bool:
        """Check whether the id uses the old identifier format"""
        return bool(self._stale_id_re.match(task_id))
    
    # Events
    
    def is_event_processed(self, event_id: str) -> bool:
        return event_id in self._event_ids
    
    def append_events(self, events: Iterable[Event]):
        """
        Record events as processed
        
        Args:
            events: Replayed events
        """
        added = 0
        for event in events:
            if event.id in self._event_ids:
                continue
            self._events.append(event)
            self._event_ids.add(event.id)
            added += 1
        if added:
            self._save_cache()
            self.logger.debug(f"[TaskCache] Recorded {added} processed events")
    
    # File metadata
    
    def list_files(self) -> List[str]:
        return list(self._file_metadata.keys())
    
    def get_file_metadata(self, path: str) -> Optional[FileMetadata]:
        metadata = self._file_metadata.get(path)
        return metadata.model_copy(deep=True) if metadata else None
    
    def add_task_to_file(self, path: str, task_id: str):
        """
        Register a task id under its document
        
        Args:
            path: Document path
            task_id: Task ID
        """
        metadata = self._file_metadata.setdefault(path, FileMetadata())
        if task_id not in metadata.task_ids:
            metadata.task_ids.append(task_id)
            metadata.task_count = len(metadata.task_ids)
        self._save_cache()
    
    def remove_tasks_from_file(self, path: str, task_ids: Iterable[str]):
        metadata = self._file_metadata.get(path)
        if metadata is None:
            return
        remove = set(task_ids)
        metadata.task_ids = [task_id for task_id in metadata.task_ids if task_id not in remove]
        metadata.task_count = len(metadata.task_ids)
        self._save_cache()
    
    def set_default_project_for_file(self, path: str, project_id: Optional[str]):
        metadata = self._file_metadata.setdefault(path, FileMetadata())
        metadata.default_project_id = project_id
        self._save_cache()
    
    def get_default_project_id_for_file(self, path: str) -> Optional[str]:
        metadata = self._file_metadata.get(path)
        return metadata.default_project_id if metadata else None
    
    def rename_file(self, old_path: str, new_path: str) -> List[str]:
        """
        Move metadata and task paths to a renamed document
        
        Args:
            old_path: Previous document path
            new_path: New document path
            
        Returns:
            Ids of the tasks in the renamed document
        """
        metadata = self._file_metadata.pop(old_path, None)
        if metadata is None:
            return []
        self._file_metadata[new_path] = metadata
        for task_id in metadata.task_ids:
            task = self._tasks.get(task_id)
            if task is not None:
                self._tasks[task_id] = task.model_copy(update={"path": new_path})
        self._save_cache()
        self.logger.info(f"[TaskCache] Renamed {old_path} -> {new_path} ({len(metadata.task_ids)} tasks)")
        return list(metadata.task_ids)
    
    # Projects and sections
    
    def replace_projects(self, projects: List[Project]):
        self._projects = list(projects)
        self._save_cache()
    
    def add_project(self, project: Project):
        self._projects.append(project)
        self._save_cache()
    
    def get_project_id_by_name(self, name: str) -> Optional[str]:
        for project in self._projects:
            if project.name == name:
                return project.id
        return None
    
    def replace_sections(self, sections: List[Section]):
        self._sections = list(sections)
        self._save_cache()
    
    def add_section(self, section: Section):
        self._sections.append(section)
        self._save_cache()
    
    def get_section_id(self, name: str, project_id: str) -> Optional[str]:
        for section in self._sections:
            if section.name == name and section.project_id == project_id:
                return section.id
        return None
    
    def get_section_name_by_id(self, section_id: Optional[str]) -> Optional[str]:
        if not section_id:
            return None
        for section in self._sections:
            if section.id == section_id:
                return section.name
        return None
