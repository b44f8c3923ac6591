"""
Tests for change detection between task lines and cached tasks
"""

import pytest
from tdsync.models.task import Duration, Section, Task
from tdsync.services.change_detector import ChangeDetector


@pytest.fixture
def detector(task_cache_service):
    task_cache_service.replace_sections([
        Section(id="sec1", name="errands", project_id="inbox_project"),
        Section(id="sec2", name="shopping", project_id="inbox_project"),
    ])
    return ChangeDetector(task_cache_service)


def make_task(**fields) -> Task:
    values = {
        "id": "6Xa",
        "content": "Buy milk",
        "project_id": "inbox_project",
        "labels": ["home"],
        "priority": 1,
        "due_date": "2024-03-01",
        "path": "Tasks.md",
    }
    values.update(fields)
    return Task(**values)


def test_no_changes(detector):
    diff = detector.diff(make_task(), make_task())

    assert not diff.has_changes
    assert diff.payload == {}
    assert diff.changes == []


def test_labels_only_change_is_minimal(detector):
    """Test that only the changed field is sent"""
    diff = detector.diff(make_task(labels=["home", "urgent"]), make_task())

    assert diff.fields == {"labels"}
    assert diff.pushable == {"labels"}
    assert diff.cache_only == set()
    assert diff.payload == {"labels": ["home", "urgent"]}
    assert diff.changes == ["Labels"]


def test_label_order_is_ignored(detector):
    diff = detector.diff(make_task(labels=["b", "a"]), make_task(labels=["a", "b"]))

    assert not diff.has_changes


def test_content_ignores_whitespace(detector):
    assert not detector.diff(make_task(content="Buy  milk "), make_task()).has_changes

    diff = detector.diff(make_task(content="Buy oat milk"), make_task())
    assert diff.content_changed
    assert diff.payload == {"content": "Buy oat milk"}


def test_due_date_change(detector):
    diff = detector.diff(make_task(due_date="2024-03-02"), make_task())

    assert diff.due_date_changed
    assert not diff.due_time_changed
    assert not diff.due_datetime_changed
    assert diff.payload == {"due_date": "2024-03-02"}
    assert diff.changes == ["Due date"]


def test_due_time_change(detector):
    cached = make_task(due_datetime="2024-03-01T09:00:00")
    parsed = make_task(due_datetime="2024-03-01T10:00:00")

    diff = detector.diff(parsed, cached)

    assert diff.due_time_changed
    assert not diff.due_date_changed
    assert not diff.due_datetime_changed
    assert diff.payload == {"due_datetime": "2024-03-01T10:00:00"}


def test_due_date_and_time_change(detector):
    cached = make_task(due_datetime="2024-03-01T09:00:00")
    parsed = make_task(due_date="2024-03-02", due_datetime="2024-03-02T10:00:00")

    diff = detector.diff(parsed, cached)

    assert diff.due_datetime_changed
    assert diff.payload == {"due_datetime": "2024-03-02T10:00:00"}
    assert diff.changes == ["Due date", "Due time"]


def test_date_only_line_ignores_cached_time(detector):
    """Test that a line without a time compares the date only"""
    cached = make_task(due_datetime="2024-03-01T09:00:00")

    assert not detector.diff(make_task(), cached).has_changes


def test_line_without_due_is_not_a_change(detector):
    assert not detector.diff(make_task(due_date=None), make_task()).has_changes


def test_duration_compared_only_when_both_present(detector):
    assert not detector.diff(make_task(duration=Duration(amount=30)), make_task()).has_changes

    diff = detector.diff(make_task(duration=Duration(amount=30)), make_task(duration=Duration(amount=45)))

    assert diff.duration_changed
    assert diff.payload == {"duration": 30, "duration_unit": "minute"}


def test_priority_change(detector):
    diff = detector.diff(make_task(priority=4), make_task())

    assert diff.priority_changed
    assert diff.payload == {"priority": 4}


def test_section_change_is_a_move(detector):
    diff = detector.diff(make_task(section_id="sec2"), make_task(section_id="sec1"))

    assert diff.section_changed
    assert diff.section_id == "sec2"
    assert "section" in diff.pushable
    assert diff.payload == {}


def test_line_without_section_keeps_cached_section(detector):
    assert not detector.diff(make_task(), make_task(section_id="sec1")).has_changes


def test_status_change_has_no_payload(detector):
    diff = detector.diff(make_task(is_completed=True), make_task())

    assert diff.status_changed
    assert diff.fields == {"status"}
    assert diff.pushable == set()
    assert not diff.has_update_payload


def test_project_and_parent_changes_are_cache_only(detector):
    """Test that changes Todoist cannot apply are not pushed"""
    diff = detector.diff(make_task(project_id="work1", parent_id="6Xparent"), make_task())

    assert diff.project_changed
    assert diff.parent_changed
    assert diff.cache_only == {"project", "parent"}
    assert diff.payload == {}


def test_deadline_changes(detector):
    added = detector.diff(make_task(deadline_date="2024-05-01"), make_task())
    removed = detector.diff(make_task(), make_task(deadline_date="2024-05-01"))

    assert added.payload == {"deadline_date": "2024-05-01"}
    assert "deadline" in added.pushable
    assert removed.deadline_changed
    assert removed.cache_only == {"deadline"}
    assert removed.payload == {}
