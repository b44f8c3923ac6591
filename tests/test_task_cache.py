"""
Tests for task cache service
"""

import pytest
import json
from tdsync.models.event import Event
from tdsync.models.task import Project, Section, Task, TaskState
from tdsync.services.task_cache import TaskCacheService


def test_cache_save_and_load_task(tmp_path):
    """Test saving and loading task from cache"""
    cache_file = tmp_path / "test_cache.json"
    service = TaskCacheService(cache_file=str(cache_file))

    service.save_task(Task(id="6Xa", content="Buy milk", project_id="inbox", path="Tasks.md"))

    task = service.load_task("6Xa")
    assert task is not None
    assert task.content == "Buy milk"
    assert task.state == TaskState.SYNCED

    assert cache_file.exists()
    with open(cache_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    assert set(data) == {"tasks", "events", "fileMetadata", "projects", "sections"}
    assert data["tasks"][0]["id"] == "6Xa"
    assert data["tasks"][0]["isCompleted"] is False


def test_cache_requires_task_id(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))

    with pytest.raises(ValueError):
        service.save_task(Task(content="No id"))


def test_loaded_task_is_a_copy(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    service.save_task(Task(id="6Xa", content="Buy milk"))

    task = service.load_task("6Xa")
    task.content = "Changed"

    assert service.load_task("6Xa").content == "Buy milk"


def test_cache_persists_across_instances(tmp_path):
    """Test that a new service reads what the previous one wrote"""
    cache_file = tmp_path / "test_cache.json"
    service = TaskCacheService(cache_file=str(cache_file))
    service.save_task(Task(id="6Xa", content="Buy milk", path="Tasks.md"))
    service.add_task_to_file("Tasks.md", "6Xa")
    service.close_task("6Xa")
    service.set_task_state("6Xa", TaskState.PENDING_REMOVAL)
    service.append_events([Event(id="ev1", object_type="item", object_id="6Xa", event_type="completed")])
    service.replace_projects([Project(id="inbox", name="Inbox")])
    service.replace_sections([Section(id="sec1", name="errands", project_id="inbox")])

    reloaded = TaskCacheService(cache_file=str(cache_file))

    task = reloaded.load_task("6Xa")
    assert task.is_completed is True
    assert task.state == TaskState.PENDING_REMOVAL
    assert reloaded.get_file_metadata("Tasks.md").task_ids == ["6Xa"]
    assert reloaded.is_event_processed("ev1")
    assert reloaded.get_project_id_by_name("Inbox") == "inbox"
    assert reloaded.get_section_id("errands", "inbox") == "sec1"


def test_file_metadata(tmp_path):
    """Test task bookkeeping per document"""
    cache_file = tmp_path / "test_cache.json"
    service = TaskCacheService(cache_file=str(cache_file))

    service.add_task_to_file("Tasks.md", "6Xa")
    service.add_task_to_file("Tasks.md", "6Xb")
    service.add_task_to_file("Tasks.md", "6Xa")

    metadata = service.get_file_metadata("Tasks.md")
    assert metadata.task_ids == ["6Xa", "6Xb"]
    assert metadata.task_count == 2

    with open(cache_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    assert data["fileMetadata"]["Tasks.md"] == {"todoistTasks": ["6Xa", "6Xb"], "todoistCount": 2}

    service.remove_tasks_from_file("Tasks.md", ["6Xa"])
    assert service.get_file_metadata("Tasks.md").task_count == 1
    assert service.get_file_metadata("Missing.md") is None


def test_rename_file(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    service.save_task(Task(id="6Xa", content="Buy milk", path="Old.md"))
    service.add_task_to_file("Old.md", "6Xa")

    moved = service.rename_file("Old.md", "notes/New.md")

    assert moved == ["6Xa"]
    assert service.get_file_metadata("Old.md") is None
    assert service.get_file_metadata("notes/New.md").task_ids == ["6Xa"]
    assert service.load_task("6Xa").path == "notes/New.md"
    assert service.rename_file("Unknown.md", "Other.md") == []


def test_update_task_fields(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    service.save_task(Task(id="6Xa", content="Buy milk", due_date="2024-03-01"))

    service.update_task_fields("6Xa", due_date="2024-03-05", content="Buy oat milk")
    service.update_task_fields("missing", content="ignored")

    task = service.load_task("6Xa")
    assert task.due_date == "2024-03-05"
    assert task.content == "Buy oat milk"
    assert service.load_task("missing") is None


def test_events_are_recorded_once(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    event = Event(id=101, object_type="item", object_id=55, event_type="updated")

    service.append_events([event])
    service.append_events([event])

    assert service.is_event_processed("101")
    assert len(service.to_dict()["events"]) == 1


def test_purge_orphaned_tasks(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    service.save_task(Task(id="6Xa", content="Keep"))
    service.save_task(Task(id="6Xb", content="Detached", state=TaskState.LOCALLY_ORPHANED))

    assert service.known_task_ids() == {"6Xa"}
    assert service.purge_orphaned_tasks() == ["6Xb"]
    assert service.load_task("6Xb") is None
    assert service.load_task("6Xa") is not None


def test_stale_task_ids(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))

    assert service.is_stale_task_id("1234567")
    assert not service.is_stale_task_id("6Xa9")


def test_corrupt_cache_file_is_ignored(tmp_path):
    cache_file = tmp_path / "test_cache.json"
    cache_file.write_text("{not json", encoding="utf-8")

    service = TaskCacheService(cache_file=str(cache_file))

    assert service.load_tasks() == []
    assert service.list_files() == []


def test_catalogue_lookups(tmp_path):
    service = TaskCacheService(cache_file=str(tmp_path / "test_cache.json"))
    service.replace_projects([Project(id="p1", name="Work")])
    service.add_section(Section(id="s1", name="errands", project_id="p1"))

    assert service.get_project_id_by_name("Work") == "p1"
    assert service.get_project_id_by_name("Home") is None
    assert service.get_section_name_by_id("s1") == "errands"
    assert service.get_section_id("errands", "p2") is None
    assert service.get_section_name_by_id(None) is None
