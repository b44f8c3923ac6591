"""
Todoist API client
"""

from typing import Optional, Dict, Any, List
import httpx
from tdsync.api.base_client import BaseAPIClient
from tdsync.config.settings import settings
from tdsync.config.constants import ACTIVITY_EVENTS_LIMIT, DURATION_UNIT_MINUTE
from tdsync.models.event import Event
from tdsync.models.response import TaskUpdateResult, TaskUpdateStatus
from tdsync.models.task import Task
from tdsync.utils.error_handler import APIError, TaskNotFoundError


class TodoistClient(BaseAPIClient):
    """Client for the Todoist API v1"""
    
    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        client_name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Todoist client
        
        Args:
            api_token: Personal API token (defaults to TODOIST_API_TOKEN)
            base_url: API base URL (defaults to TODOIST_API_URL)
            client_name: User-Agent sent with requests (defaults to SYNC_CLIENT_NAME)
            transport: Custom httpx transport (used by tests)
        """
        super().__init__(base_url or settings.TODOIST_API_URL, transport=transport)
        self.api_token = api_token if api_token is not None else settings.TODOIST_API_TOKEN
        self.client_name = client_name or settings.SYNC_CLIENT_NAME
    
    def _get_headers(self) -> Dict[str, str]:
        """Get request headers with authorization"""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "User-Agent": self.client_name,
        }
    
    async def _get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every page of a cursor-paginated list endpoint"""
        params = dict(params or {})
        results: List[Dict[str, Any]] = []
        while True:
            response = await self.get(endpoint=endpoint, headers=self._get_headers(), params=params)
            if isinstance(response, list):
                return results + response
            results.extend(response.get("results", []))
            cursor = response.get("next_cursor")
            if not cursor:
                return results
            params["cursor"] = cursor
    
    @staticmethod
    def build_task_payload(task: Task) -> Dict[str, Any]:
        """
        Build create payload from a parsed task
        
        Empty section/parent ids and zero durations are dropped, and a
        due datetime takes precedence over a bare due date.
        
        Args:
            task: Parsed task
            
        Returns:
            JSON body for POST /tasks
        """
        payload: Dict[str, Any] = {
            "content": task.content,
            "description": task.description,
            "labels": task.labels,
            "priority": task.priority,
        }
        
        if task.project_id:
            payload["project_id"] = task.project_id
        if task.section_id:
            payload["section_id"] = task.section_id
        if task.parent_id:
            payload["parent_id"] = task.parent_id
        
        if task.due_datetime:
            payload["due_datetime"] = task.due_datetime
        elif task.due_date:
            payload["due_date"] = task.due_date
        
        if task.duration and task.duration.amount > 0:
            payload["duration"] = task.duration.amount
            payload["duration_unit"] = task.duration.unit or DURATION_UNIT_MINUTE
        
        if task.deadline_date:
            payload["deadline_date"] = task.deadline_date
        
        return payload
    
    async def create_task(self, task: Task) -> Optional[Dict[str, Any]]:
        """
        Create a new task
        
        Args:
            task: Parsed task
            
        Returns:
            Created task data, or None if Todoist rejected the request
        """
        try:
            return await self.post(
                endpoint="/tasks",
                headers=self._get_headers(),
                json_data=self.build_task_payload(task),
            )
        except APIError as e:
            self.logger.error(f"[Todoist] Failed to create task '{task.content}': {e}")
            return None
    
    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> TaskUpdateResult:
        """
        Update task fields
        
        Args:
            task_id: Task ID
            fields: Changed fields only
            
        Returns:
            TaskUpdateResult with OK, TASK_NOT_FOUND or FATAL status
        """
        if not fields:
            raise ValueError("At least one field is required to update a task")
        
        try:
            response = await self.post(
                endpoint=f"/tasks/{task_id}",
                headers=self._get_headers(),
                json_data=fields,
            )
        except TaskNotFoundError as e:
            self.logger.warning(f"[Todoist] Task {task_id} not found while updating")
            return TaskUpdateResult(status=TaskUpdateStatus.TASK_NOT_FOUND, error=str(e))
        except APIError as e:
            self.logger.error(f"[Todoist] Failed to update task {task_id}: {e}")
            return TaskUpdateResult(status=TaskUpdateStatus.FATAL, error=str(e))
        
        return TaskUpdateResult(status=TaskUpdateStatus.OK, task=response or None)
    
    async def close_task(self, task_id: str) -> bool:
        """Mark task as completed"""
        await self.post(endpoint=f"/tasks/{task_id}/close", headers=self._get_headers())
        return True
    
    async def reopen_task(self, task_id: str) -> bool:
        """Mark task as not completed"""
        await self.post(endpoint=f"/tasks/{task_id}/reopen", headers=self._get_headers())
        return True
    
    async def delete_task(self, task_id: str) -> bool:
        """
        Delete task
        
        A task that is already gone counts as deleted.
        """
        try:
            await self.delete(endpoint=f"/tasks/{task_id}", headers=self._get_headers())
        except TaskNotFoundError:
            self.logger.info(f"[Todoist] Task {task_id} was already deleted")
        return True
    
    async def move_task(self, task_id: str, section_id: str) -> bool:
        """Move task to another section"""
        await self.post(
            endpoint=f"/tasks/{task_id}/move",
            headers=self._get_headers(),
            json_data={"section_id": section_id},
        )
        return True
    
    async def get_task_by_id(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Get task data, or None if the task does not exist"""
        try:
            return await self.get(endpoint=f"/tasks/{task_id}", headers=self._get_headers())
        except TaskNotFoundError:
            return None
    
    async def get_projects(self) -> List[Dict[str, Any]]:
        """Get list of projects"""
        return await self._get_all("/projects")
    
    async def create_project(self, name: str) -> Dict[str, Any]:
        """
        Create a new project
        
        Args:
            name: Project name
            
        Returns:
            Created project data
        """
        if not name:
            raise ValueError("Project name is required")
        return await self.post(endpoint="/projects", headers=self._get_headers(), json_data={"name": name})
    
    async def get_sections(self, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get sections, optionally of one project"""
        params = {"project_id": project_id} if project_id else None
        return await self._get_all("/sections", params=params)
    
    async def create_section(self, name: str, project_id: str) -> Dict[str, Any]:
        """
        Create a new section
        
        Args:
            name: Section name
            project_id: Project the section belongs to
            
        Returns:
            Created section data
        """
        if not name:
            raise ValueError("Section name is required")
        return await self.post(
            endpoint="/sections",
            headers=self._get_headers(),
            json_data={"name": name, "project_id": project_id},
        )
    
    async def get_activity_events(self, limit: int = ACTIVITY_EVENTS_LIMIT) -> List[Event]:
        """
        Get recent activity events
        
        Args:
            limit: Maximum number of events
            
        Returns:
            Events, newest first as Todoist returns them
        """
        response = await self.get(
            endpoint="/activities",
            headers=self._get_headers(),
            params={"limit": limit},
        )
        return [Event.model_validate(item) for item in response.get("results", [])]
