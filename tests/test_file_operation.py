"""
Tests for document rewrites of synced task lines
"""

import pytest
from tdsync.models.task import Task

TASKS = "Tasks.md"


def task_link(task_id: str) -> str:
    return f"%%[tid:: [{task_id}](https://app.todoist.com/app/task/{task_id})]%%"


@pytest.fixture
def tasks_document(vault, task_cache_service):
    """Document with one synced task"""
    task_cache_service.save_task(Task(id="6Xa", content="Pay rent", path=TASKS))
    (vault.root / TASKS).write_text(
        f"# Bills\n- [ ] Pay rent #tdsync {task_link('6Xa')}\n", encoding="utf-8"
    )
    return vault.root / TASKS


@pytest.mark.asyncio
async def test_complete_and_reopen(file_operation, tasks_document):
    assert await file_operation.complete_task_in_file("6Xa") is True
    assert f"- [x] Pay rent #tdsync {task_link('6Xa')}" in tasks_document.read_text(encoding="utf-8")

    assert await file_operation.complete_task_in_file("6Xa") is False

    assert await file_operation.incomplete_task_in_file("6Xa") is True
    assert "- [ ] Pay rent" in tasks_document.read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_unknown_task_is_not_rewritten(file_operation, tasks_document):
    assert await file_operation.complete_task_in_file("6Xmissing") is False


@pytest.mark.asyncio
async def test_due_date_inserted_with_time(file_operation, tasks_document):
    """Test a remote due datetime on a line without due tokens"""
    assert await file_operation.sync_updated_task_due_date_to_file("6Xa", "2024-03-05T10:00:00") is True

    lines = tasks_document.read_text(encoding="utf-8").split("\n")
    assert lines[1] == f"- [ ] Pay rent 📅2024-03-05 ⏰10:00 #tdsync {task_link('6Xa')}"


@pytest.mark.asyncio
async def test_due_time_replaced(file_operation, tasks_document):
    tasks_document.write_text(
        f"- [ ] Pay rent 📅2024-03-05 ⏰10:00 #tdsync {task_link('6Xa')}", encoding="utf-8"
    )

    await file_operation.sync_updated_task_due_date_to_file("6Xa", "2024-03-05T11:30:00")

    assert tasks_document.read_text(encoding="utf-8") == (
        f"- [ ] Pay rent 📅2024-03-05 ⏰11:30 #tdsync {task_link('6Xa')}"
    )


@pytest.mark.asyncio
async def test_due_removed(file_operation, tasks_document):
    tasks_document.write_text(
        f"- [ ] Pay rent 📅2024-03-05 ⏰10:00 #tdsync {task_link('6Xa')}", encoding="utf-8"
    )

    await file_operation.sync_updated_task_due_date_to_file("6Xa", None)

    assert tasks_document.read_text(encoding="utf-8") == f"- [ ] Pay rent #tdsync {task_link('6Xa')}"


@pytest.mark.asyncio
async def test_content_replaced(file_operation, tasks_document):
    await file_operation.sync_updated_task_content_to_file("6Xa", "Pay rent", "Pay March rent")

    assert "- [ ] Pay March rent #tdsync" in tasks_document.read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_add_sync_tag_to_file(file_operation, vault):
    """Test tagging every checkbox line in full vault mode"""
    (vault.root / "Todo.md").write_text(
        "- [ ] Buy milk\n"
        "- [ ] Tagged #tdsync\n"
        f"- [ ] Linked #tdsync {task_link('6Xb')}\n"
        "Not a task\n"
        '- [ ] Lost <mark style="background: #FF5582A6;">+++Task not found in todoist+++</mark>',
        encoding="utf-8",
    )

    assert await file_operation.add_sync_tag_to_file("Todo.md") is True

    lines = (vault.root / "Todo.md").read_text(encoding="utf-8").split("\n")
    assert lines[0] == "- [ ] Buy milk #tdsync"
    assert lines[1] == "- [ ] Tagged #tdsync"
    assert lines[3] == "Not a task"
    assert "#tdsync" not in lines[4]


@pytest.mark.asyncio
async def test_add_sync_tag_autofixes_flagged_lines(file_operation, vault):
    (vault.root / "Todo.md").write_text(
        f'- [ ] Lost {task_link("6Xc")} <mark style="background: #FF5582A6;">+++Task not found in todoist+++</mark>',
        encoding="utf-8",
    )

    assert await file_operation.add_sync_tag_to_file("Todo.md", autofix=True) is True

    assert (vault.root / "Todo.md").read_text(encoding="utf-8") == "- [ ] Lost #tdsync"
