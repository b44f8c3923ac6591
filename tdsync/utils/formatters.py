"""
Notification message formatting utilities
"""

from typing import List
from tdsync.models.task import Task


def format_task_created(task: Task) -> str:
    """
    Format task creation message
    
    Args:
        task: Created task
        
    Returns:
        Formatted message
    """
    message = f"New task '{task.content}' created in Todoist (id {task.id})"
    if task.due_datetime:
        message += f", due {task.due_datetime.replace('T', ' ')[:16]}"
    elif task.due_date:
        message += f", due {task.due_date}"
    return message


def format_task_updated(task_id: str, changes: List[str]) -> str:
    """
    Format task update message
    
    Args:
        task_id: Task ID
        changes: Human readable change labels, e.g. "Content"
        
    Returns:
        One message listing every changed field
    """
    message = f"Task {task_id} is updated."
    for change in changes:
        message += f" {change} was changed."
    return message


def format_tasks_deleted(task_ids: List[str]) -> str:
    return f"Tasks deleted from Todoist: {', '.join(task_ids)}"


def format_task_completed(task_id: str) -> str:
    return f"Task {task_id} is closed."


def format_task_reopened(task_id: str) -> str:
    return f"Task {task_id} is reopened."


def format_task_missing(task_id: str, path: str) -> str:
    """Format message for a task that no longer exists in Todoist"""
    return (
        f"Task {task_id} in {path} was not found in Todoist. "
        f"The line was flagged and will not be synced until the sync tag is added again."
    )


def format_task_detached(task_id: str, path: str) -> str:
    return f"Task {task_id} in {path} was detached and will be created again on the next sync."


def format_manual_action_needed(task_id: str, fields: List[str]) -> str:
    """Format message for changes Todoist cannot apply through the API"""
    return (
        f"Task {task_id}: {', '.join(fields)} changed locally but cannot be synced, "
        f"manual action needed in Todoist."
    )
