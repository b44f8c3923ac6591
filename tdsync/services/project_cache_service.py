"""
Project and section catalogue backed by the task cache
"""

from typing import Optional
from datetime import datetime, timedelta
from tdsync.api.todoist_client import TodoistClient
from tdsync.models.task import Project, Section
from tdsync.services.task_cache import TaskCacheService
from tdsync.utils.error_handler import APIError
from tdsync.utils.logger import logger


class ProjectCacheService:
    """Service for resolving project and section names with a refresh TTL"""
    
    def __init__(self, client: TodoistClient, cache: TaskCacheService):
        """
        Initialize project cache service
        
        Args:
            client: Todoist API client
            cache: Task cache holding the catalogues
        """
        self.client = client
        self.cache = cache
        self.logger = logger
        self._last_update: Optional[datetime] = None
        self._cache_ttl: timedelta = timedelta(hours=24)
    
    async def refresh(self, force_refresh: bool = False):
        """
        Reload projects and sections from Todoist
        
        Args:
            force_refresh: Ignore the TTL
        """
        if not force_refresh and not self._should_refresh():
            self.logger.debug("[ProjectCache] Using cached projects")
            return
        
        self.logger.info("[ProjectCache] Refreshing projects cache...")
        try:
            projects = await self.client.get_projects()
            sections = await self.client.get_sections()
        except APIError as e:
            self.logger.error(f"[ProjectCache] Failed to refresh projects cache: {e}")
            return
        
        self.cache.replace_projects([Project.model_validate(item) for item in projects])
        self.cache.replace_sections([Section.model_validate(item) for item in sections])
        self._last_update = datetime.now()
        self.logger.info(
            f"[ProjectCache] Projects cache refreshed: {len(projects)} projects, {len(sections)} sections"
        )
    
    def _should_refresh(self) -> bool:
        """
        Check if cache should be refreshed
        
        Returns:
            True if cache should be refreshed
        """
        if not self._last_update:
            return True
        return datetime.now() - self._last_update > self._cache_ttl
    
    async def get_or_create_project_id(self, name: str) -> Optional[str]:
        """
        Resolve project name to id, creating the project if it is unknown
        
        Args:
            name: Project name
            
        Returns:
            Project id, or None if creation failed
        """
        project_id = self.cache.get_project_id_by_name(name)
        if project_id:
            return project_id
        
        try:
            created = await self.client.create_project(name)
        except APIError as e:
            self.logger.error(f"[ProjectCache] Failed to create project '{name}': {e}")
            return None
        
        project = Project.model_validate(created)
        self.cache.add_project(project)
        self.logger.info(f"[ProjectCache] Created project '{name}' ({project.id})")
        return project.id
    
    async def get_or_create_section_id(self, name: str, project_id: str) -> Optional[str]:
        """
        Resolve section name under a project, creating it if needed
        
        Args:
            name: Section name
            project_id: Owning project id
            
        Returns:
            Section id, or None if creation failed
        """
        section_id = self.cache.get_section_id(name, project_id)
        if section_id:
            return section_id
        
        try:
            created = await self.client.create_section(name, project_id)
        except APIError as e:
            self.logger.error(f"[ProjectCache] Failed to create section '{name}': {e}")
            return None
        
        section = Section.model_validate(created)
        self.cache.add_section(section)
        self.logger.info(f"[ProjectCache] Created section '{name}' ({section.id}) in project {project_id}")
        return section.id
    
    def clear_cache(self):
        """Force a refresh on next use"""
        self._last_update = None
        self.logger.debug("[ProjectCache] Cache cleared")
