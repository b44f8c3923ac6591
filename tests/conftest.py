"""
Pytest configuration and fixtures
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from tdsync.api.todoist_client import TodoistClient
from tdsync.config.settings import Settings
from tdsync.models.response import TaskUpdateResult, TaskUpdateStatus
from tdsync.models.task import Project, Task
from tdsync.services.change_detector import ChangeDetector
from tdsync.services.document_store import VaultDocumentStore
from tdsync.services.file_operation import FileOperation
from tdsync.services.notifier import Notifier
from tdsync.services.project_cache_service import ProjectCacheService
from tdsync.services.sync_engine import SyncEngine
from tdsync.services.sync_lock import SyncLock
from tdsync.services.task_cache import TaskCacheService
from tdsync.services.task_parser import TaskParser


def api_task(task: Task, task_id: str) -> dict:
    """Todoist response for a created task"""
    due = None
    if task.due_datetime or task.due_date:
        due = {"date": task.due_datetime or task.due_date}
    return {
        "id": task_id,
        "content": task.content,
        "description": task.description,
        "project_id": task.project_id,
        "section_id": task.section_id,
        "parent_id": task.parent_id,
        "labels": task.labels,
        "priority": task.priority,
        "due": due,
        "checked": False,
    }


@pytest.fixture
def test_settings(tmp_path):
    """Settings with predictable values"""
    settings = Settings()
    settings.VAULT_PATH = str(tmp_path / "vault")
    settings.VAULT_NAME = "vault"
    settings.SYNC_TAG = "#tdsync"
    settings.DEFAULT_PROJECT_NAME = "Inbox"
    settings.SYNC_CLIENT_NAME = "tdsync"
    settings.ALTERNATIVE_KEYWORDS = True
    settings.CHANGE_DATE_ORDER = False
    settings.LINKS_APP_URI = False
    settings.ENABLE_FULL_VAULT_SYNC = False
    settings.COMMENTS_SYNC = True
    settings.AUTOFIX_NON_EXISTING_TASK = False
    settings.NON_EXISTING_TASK_FLAG = "Task not found in todoist"
    return settings


@pytest.fixture
def mock_todoist_client():
    """Mock Todoist client"""
    client = MagicMock(spec=TodoistClient)
    counter = {"next": 0}

    def create(task: Task) -> dict:
        counter["next"] += 1
        return api_task(task, f"6Xtask{counter['next']}")

    client.create_task = AsyncMock(side_effect=create)
    client.update_task = AsyncMock(return_value=TaskUpdateResult(status=TaskUpdateStatus.OK))
    client.close_task = AsyncMock(return_value=True)
    client.reopen_task = AsyncMock(return_value=True)
    client.delete_task = AsyncMock(return_value=True)
    client.move_task = AsyncMock(return_value=True)
    client.get_task_by_id = AsyncMock(return_value=None)
    client.get_projects = AsyncMock(return_value=[])
    client.get_sections = AsyncMock(return_value=[])
    client.create_project = AsyncMock(side_effect=lambda name: {"id": f"proj_{name.lower()}", "name": name})
    client.create_section = AsyncMock(
        side_effect=lambda name, project_id: {"id": f"sec_{name}", "name": name, "project_id": project_id}
    )
    client.get_activity_events = AsyncMock(return_value=[])
    return client


@pytest.fixture
def task_cache_service(tmp_path):
    """Task cache service with temporary file and a small project catalogue"""
    cache_file = tmp_path / "test_task_cache.json"
    service = TaskCacheService(cache_file=str(cache_file))
    service.replace_projects([
        Project(id="inbox_project", name="Inbox"),
        Project(id="work1", name="Work"),
    ])
    return service


@pytest.fixture
def project_cache(mock_todoist_client, task_cache_service):
    return ProjectCacheService(mock_todoist_client, task_cache_service)


@pytest.fixture
def task_parser(task_cache_service, project_cache, test_settings):
    return TaskParser(task_cache_service, project_cache, test_settings)


@pytest.fixture
def vault(test_settings):
    """Empty vault directory with a document store"""
    store = VaultDocumentStore(test_settings.VAULT_PATH)
    store.root.mkdir(parents=True, exist_ok=True)
    return store


@pytest.fixture
def file_operation(vault, task_parser, task_cache_service):
    return FileOperation(vault, task_parser, task_cache_service)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def sync_engine(
    mock_todoist_client,
    task_cache_service,
    vault,
    task_parser,
    file_operation,
    project_cache,
    notifier,
    test_settings,
):
    """Sync engine with mocked Todoist and a temporary vault"""
    return SyncEngine(
        client=mock_todoist_client,
        cache=task_cache_service,
        store=vault,
        parser=task_parser,
        file_operation=file_operation,
        change_detector=ChangeDetector(task_cache_service),
        project_cache=project_cache,
        lock=SyncLock(max_attempts=2, retry_interval=0.01),
        notifier=notifier,
        settings=test_settings,
    )
