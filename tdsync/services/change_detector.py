"""
Change detection between a parsed task line and the cached task
"""

import re
from typing import Optional
from tdsync.models.response import TaskDiff
from tdsync.models.task import Task
from tdsync.services.task_cache import TaskCacheService
from tdsync.utils.date_parser import normalize_date
from tdsync.utils.logger import logger

WHITESPACE_PATTERN = re.compile(r"\s+")


class ChangeDetector:
    """Computes which task fields changed and how they can be synced"""

    def __init__(self, cache: TaskCacheService):
        """
        Initialize change detector

        Args:
            cache: Task cache used to resolve section names
        """
        self.cache = cache
        self.logger = logger

    @staticmethod
    def _mark(diff: TaskDiff, field: str, label: str, pushable: bool = True):
        diff.fields.add(field)
        diff.changes.append(label)
        if pushable:
            diff.pushable.add(field)
        else:
            diff.cache_only.add(field)

    @staticmethod
    def content_changed(parsed: Task, cached: Task) -> bool:
        """Compare content ignoring every whitespace character"""
        return WHITESPACE_PATTERN.sub("", parsed.content) != WHITESPACE_PATTERN.sub("", cached.content)

    @staticmethod
    def labels_changed(parsed: Task, cached: Task) -> bool:
        return sorted(parsed.labels) != sorted(cached.labels)

    def _diff_due(self, parsed: Task, cached: Task, diff: TaskDiff):
        """
        Compare due values by the shape present on the line

        A line without a time compares the date only, a line without a date
        compares the time only, and a line with both compares each part on
        its own. A line without any due is never a change.
        """
        line_date = parsed.due_date
        line_time = parsed.due_time
        if line_date is None and line_time is None:
            return

        cached_date = cached.due_date or (cached.due_datetime[:10] if cached.due_datetime else None)
        cached_time = cached.due_time

        date_changed = line_date is not None and line_date != cached_date
        time_changed = line_time is not None and line_time != cached_time
        if not date_changed and not time_changed:
            return

        diff.due_date_changed = date_changed
        diff.due_time_changed = time_changed
        diff.due_datetime_changed = date_changed and time_changed
        diff.fields.add("due")
        diff.pushable.add("due")
        if date_changed:
            diff.changes.append("Due date")
        if time_changed:
            diff.changes.append("Due time")

        if line_time is not None:
            diff.payload["due_datetime"] = parsed.due_datetime
        else:
            diff.payload["due_date"] = line_date

    def _section_name(self, section_id: Optional[str]) -> Optional[str]:
        return self.cache.get_section_name_by_id(section_id)

    def diff(self, parsed: Task, cached: Task) -> TaskDiff:
        """
        Compare a parsed task with its cached version

        Args:
            parsed: Task parsed from the document line
            cached: Last synced task

        Returns:
            TaskDiff with the minimal update payload and change labels
        """
        diff = TaskDiff()

        if self.content_changed(parsed, cached):
            diff.content_changed = True
            diff.payload["content"] = parsed.content
            self._mark(diff, "content", "Content")

        if parsed.is_completed != cached.is_completed:
            diff.status_changed = True
            self._mark(diff, "status", "Status")
            # close/reopen are separate calls
            diff.pushable.discard("status")

        self._diff_due(parsed, cached, diff)

        if self.labels_changed(parsed, cached):
            diff.labels_changed = True
            diff.payload["labels"] = list(parsed.labels)
            self._mark(diff, "labels", "Labels")

        if parsed.priority != cached.priority:
            diff.priority_changed = True
            diff.payload["priority"] = parsed.priority
            self._mark(diff, "priority", "Priority")

        # Todoist has no way to clear a duration, so only compare amounts
        if parsed.duration and cached.duration and parsed.duration.amount != cached.duration.amount:
            diff.duration_changed = True
            diff.payload["duration"] = parsed.duration.amount
            diff.payload["duration_unit"] = parsed.duration.unit
            self._mark(diff, "duration", "Duration")

        parsed_section = self._section_name(parsed.section_id)
        if parsed_section and parsed_section != self._section_name(cached.section_id):
            diff.section_changed = True
            diff.section_id = parsed.section_id
            self._mark(diff, "section", "Section")

        parsed_deadline = normalize_date(parsed.deadline_date) if parsed.deadline_date else None
        cached_deadline = normalize_date(cached.deadline_date) if cached.deadline_date else None
        if parsed_deadline != cached_deadline:
            diff.deadline_changed = True
            if parsed_deadline:
                diff.payload["deadline_date"] = parsed_deadline
                self._mark(diff, "deadline", "Deadline")
            else:
                self._mark(diff, "deadline", "Deadline", pushable=False)

        if parsed.project_id and parsed.project_id != cached.project_id:
            diff.project_changed = True
            self._mark(diff, "project", "Project", pushable=False)

        if (parsed.parent_id or None) != (cached.parent_id or None):
            diff.parent_changed = True
            self._mark(diff, "parent", "Parent", pushable=False)

        if diff.has_changes:
            self.logger.debug(
                f"[ChangeDetector] Task {cached.id}: changed={sorted(diff.fields)} "
                f"pushable={sorted(diff.pushable)} cache_only={sorted(diff.cache_only)}"
            )
        return diff
