"""
Two-way synchronization between vault task lines and Todoist
"""

import re
from typing import Any, Awaitable, Callable, List, Optional
from tdsync.api.todoist_client import TodoistClient
from tdsync.config.settings import Settings, settings as default_settings
from tdsync.models.event import Event
from tdsync.models.response import TaskUpdateStatus
from tdsync.models.task import Task, TaskState
from tdsync.services.change_detector import ChangeDetector
from tdsync.services.document_store import VaultDocumentStore
from tdsync.services.file_operation import FileOperation
from tdsync.services.notifier import Notifier
from tdsync.services.project_cache_service import ProjectCacheService
from tdsync.services.sync_lock import SyncLock
from tdsync.services.task_cache import TaskCacheService
from tdsync.services.task_parser import TaskParser
from tdsync.utils.date_parser import iso_to_local_date, iso_to_local_time, format_event_datetime
from tdsync.utils.error_handler import SyncError, APIError, handle_error
from tdsync.utils.formatters import (
    format_task_created,
    format_task_updated,
    format_tasks_deleted,
    format_task_completed,
    format_task_reopened,
    format_task_missing,
    format_task_detached,
    format_manual_action_needed,
)
from tdsync.utils.logger import logger


class SyncEngine:
    """
    Runs the sync passes

    Methods named *_check and sync_remote_to_documents expect the caller
    to hold the sync lock; run_locked takes it for them.
    """

    def __init__(
        self,
        client: TodoistClient,
        cache: TaskCacheService,
        store: VaultDocumentStore,
        parser: TaskParser,
        file_operation: FileOperation,
        change_detector: ChangeDetector,
        project_cache: ProjectCacheService,
        lock: Optional[SyncLock] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.cache = cache
        self.store = store
        self.parser = parser
        self.file_operation = file_operation
        self.change_detector = change_detector
        self.project_cache = project_cache
        self.lock = lock or SyncLock()
        self.notifier = notifier or Notifier()
        self.settings = settings or default_settings
        self.logger = logger

    async def run_locked(self, name: str, operation: Callable[..., Awaitable[Any]], *args) -> bool:
        """
        Run one pass under the sync lock

        Args:
            name: Pass description for logs
            operation: Coroutine function implementing the pass
            *args: Arguments for the pass

        Returns:
            False if the lock could not be acquired
        """
        async with self.lock.hold() as acquired:
            if not acquired:
                self.logger.warning(f"[SyncEngine] Skipped {name}: another sync is running")
                return False
            try:
                await operation(*args)
            except Exception as e:
                handle_error(e, f"[SyncEngine] {name} failed")
            return True

    # New tasks

    async def _create_task_from_line(
        self, line: str, path: str, line_index: int, document_text: str
    ) -> Optional[Task]:
        parsed = await self.parser.convert_text_to_task(line, path, line_index, document_text)
        created = await self.client.create_task(parsed)
        if not created:
            return None

        task = Task.from_api(created, path)
        if parsed.is_completed:
            try:
                await self.client.close_task(task.id)
                task.is_completed = True
            except APIError as e:
                self.logger.error(f"[SyncEngine] Created task {task.id} but could not close it: {e}")

        self.cache.save_task(task)
        self.cache.add_task_to_file(path, task.id)
        self.notifier.notify(format_task_created(task))
        return task

    async def new_task_check_document(self, path: str) -> List[str]:
        """
        Create every unsynced task of a document

        Args:
            path: Document path

        Returns:
            Ids of the created tasks
        """
        if self.settings.ENABLE_FULL_VAULT_SYNC:
            await self.file_operation.add_sync_tag_to_file(path, autofix=self.settings.AUTOFIX_NON_EXISTING_TASK)

        content = await self.store.read_document(path)
        lines = content.split("\n")
        created: List[str] = []
        modified = False

        for index, line in enumerate(lines):
            if not self.parser.is_task_line(line) or self.parser.has_task_id(line):
                continue

            stable = self.parser.stabilize_time_only_line(line)
            if stable != line:
                lines[index] = line = stable
                modified = True

            # Parents created earlier in this pass already carry their link
            task = await self._create_task_from_line(line, path, index, "\n".join(lines))
            if task is None:
                continue
            lines[index] = self.parser.add_task_link(line, self.parser.build_task_link(task.id))
            created.append(task.id)
            modified = True

        if modified:
            await self.store.write_document(path, "\n".join(lines))
        if created:
            self.logger.info(f"[SyncEngine] Created {len(created)} tasks from {path}")
        return created

    async def new_task_check_line(self, path: str, line_index: int) -> Optional[str]:
        """
        Create the task on one line if it is not synced yet

        Args:
            path: Document path
            line_index: Line number

        Returns:
            Id of the created task
        """
        content = await self.store.read_document(path)
        lines = content.split("\n")
        if not 0 <= line_index < len(lines):
            return None

        original = lines[line_index]
        if not self.parser.is_task_line(original) or self.parser.has_task_id(original):
            return None

        line = self.parser.stabilize_time_only_line(original)
        lines[line_index] = line
        task = await self._create_task_from_line(line, path, line_index, "\n".join(lines))
        if task is not None:
            line = self.parser.add_task_link(line, self.parser.build_task_link(task.id))

        if line != original:
            await self.store.replace_line(path, line_index, line)
        return task.id if task else None

    # Deleted tasks

    async def deleted_task_check(self, path: str) -> List[str]:
        """
        Delete tasks whose lines were removed from a document

        Args:
            path: Document path

        Returns:
            Ids removed from the cache
        """
        metadata = self.cache.get_file_metadata(path)
        if metadata is None or not metadata.task_ids:
            return []
        if not self.store.exists(path):
            self.logger.warning(f"[SyncEngine] Document {path} is gone, keeping its tasks")
            return []

        content = await self.store.read_document(path)
        if self.parser.count_sync_tags(content) > 0 and self.parser.count_task_links(content) == 0:
            return []

        search_text = self.parser.strip_frontmatter(content)
        missing = [
            task_id for task_id in metadata.task_ids
            if not re.search(rf"(?<![a-zA-Z0-9]){re.escape(task_id)}(?![a-zA-Z0-9])", search_text)
        ]
        if not missing:
            return []

        removed: List[str] = []
        deleted_remotely: List[str] = []
        for task_id in missing:
            cached = self.cache.load_task(task_id)
            if cached is None or cached.state != TaskState.SYNCED:
                # Already gone from Todoist or detached for a resync
                removed.append(task_id)
                continue
            try:
                await self.client.delete_task(task_id)
            except APIError as e:
                self.logger.error(f"[SyncEngine] Failed to delete task {task_id}: {e}")
                continue
            removed.append(task_id)
            deleted_remotely.append(task_id)

        self.cache.delete_tasks(removed)
        self.cache.remove_tasks_from_file(path, removed)
        if deleted_remotely:
            self.notifier.notify(format_tasks_deleted(deleted_remotely))
        return removed

    # Modified tasks

    async def _flag_missing_task(self, path: str, task_id: str):
        await self.file_operation.flag_missing_task_in_file(path, task_id)
        self.cache.set_task_state(task_id, TaskState.PENDING_REMOVAL)
        self.notifier.notify(format_task_missing(task_id, path))

    async def _detach_task(self, path: str, task_id: str):
        await self.file_operation.detach_task_in_file(path, task_id)
        self.cache.set_task_state(task_id, TaskState.LOCALLY_ORPHANED)
        self.cache.remove_tasks_from_file(path, [task_id])
        self.notifier.notify(format_task_detached(task_id, path))

    async def modified_task_check_line(
        self,
        path: str,
        line: str,
        line_index: Optional[int] = None,
        document_text: Optional[str] = None,
    ) -> bool:
        """
        Push the changes of one synced task line

        Args:
            path: Document path
            line: Line text
            line_index: Line number, for parent lookup and in-place rewrites
            document_text: Full document, for parent lookup

        Returns:
            True if the task or its line changed
        """
        if not self.parser.is_task_line(line) or not self.parser.has_task_id(line):
            return False

        task_id = self.parser.get_task_id(line)
        if self.cache.is_stale_task_id(task_id):
            self.logger.debug(f"[SyncEngine] Task {task_id} uses the old id format, skipping")
            return False

        cached = self.cache.load_task(task_id)
        if cached is None:
            self.logger.debug(f"[SyncEngine] Task {task_id} is not cached, nothing to do")
            return False
        if cached.state == TaskState.PENDING_REMOVAL:
            # The sync tag was added back to a flagged line
            await self._detach_task(path, task_id)
            return True
        if cached.state == TaskState.LOCALLY_ORPHANED:
            return False

        if document_text is None:
            document_text = await self.store.read_document(path)
        if line_index is None:
            line_index = next(
                (index for index, text in enumerate(document_text.split("\n"))
                 if self.parser.get_task_id(text) == task_id),
                None,
            )

        stable = self.parser.stabilize_time_only_line(line)
        if stable != line:
            await self.file_operation.rewrite_task_line(task_id, lambda _: stable, path=path)
            line = stable

        parsed = await self.parser.convert_text_to_task(line, path, line_index, document_text)
        diff = self.change_detector.diff(parsed, cached)
        if not diff.has_changes:
            return False

        updated = cached
        if diff.has_update_payload:
            result = await self.client.update_task(task_id, diff.payload)
            if result.status == TaskUpdateStatus.TASK_NOT_FOUND:
                await self._flag_missing_task(path, task_id)
                return True
            if result.status == TaskUpdateStatus.FATAL:
                self.logger.error(f"[SyncEngine] Update of task {task_id} failed: {result.error}")
                return False
            if result.task:
                updated = Task.from_api(result.task, path)
            else:
                updated = cached.model_copy(update={
                    "content": parsed.content,
                    "labels": parsed.labels,
                    "priority": parsed.priority,
                    "due_date": parsed.due_date or cached.due_date,
                    "due_datetime": parsed.due_datetime if diff.due_time_changed else cached.due_datetime,
                    "duration": parsed.duration or cached.duration,
                    "deadline_date": parsed.deadline_date or cached.deadline_date,
                })

        if diff.section_changed and diff.section_id:
            try:
                await self.client.move_task(task_id, diff.section_id)
                updated.section_id = diff.section_id
            except APIError as e:
                self.logger.error(f"[SyncEngine] Failed to move task {task_id} to section {diff.section_id}: {e}")

        if diff.status_changed:
            try:
                if parsed.is_completed:
                    await self.client.close_task(task_id)
                else:
                    await self.client.reopen_task(task_id)
                updated.is_completed = parsed.is_completed
            except APIError as e:
                self.logger.error(f"[SyncEngine] Failed to change status of task {task_id}: {e}")

        if diff.cache_only:
            self.logger.warning(format_manual_action_needed(task_id, sorted(diff.cache_only)))
            # Mirror the text so the divergence is reported once
            if diff.project_changed:
                updated.project_id = parsed.project_id
            if diff.parent_changed:
                updated.parent_id = parsed.parent_id
            if "deadline" in diff.cache_only:
                updated.deadline_date = None

        updated.path = path
        updated.state = TaskState.SYNCED
        self.cache.save_task(updated)
        self.notifier.notify(format_task_updated(task_id, diff.changes))
        return True

    async def modified_task_check_document(self, path: str) -> int:
        """
        Push the changes of every synced task line in a document

        Args:
            path: Document path

        Returns:
            Number of tasks that changed
        """
        content = await self.store.read_document(path)
        changed = 0
        for index, line in enumerate(content.split("\n")):
            if not self.parser.is_task_line(line) or not self.parser.has_task_id(line):
                continue
            try:
                if await self.modified_task_check_line(path, line, index, content):
                    changed += 1
            except SyncError as e:
                self.logger.error(f"[SyncEngine] Failed to sync line {index + 1} of {path}: {e}")
        return changed

    # Status

    async def close_task(self, task_id: str) -> bool:
        """Complete a task in Todoist, its line and the cache"""
        try:
            await self.client.close_task(task_id)
        except APIError as e:
            self.logger.error(f"[SyncEngine] Failed to close task {task_id}: {e}")
            return False
        await self.file_operation.complete_task_in_file(task_id)
        self.cache.close_task(task_id)
        self.notifier.notify(format_task_completed(task_id))
        return True

    async def reopen_task(self, task_id: str) -> bool:
        """Reopen a task in Todoist, its line and the cache"""
        try:
            await self.client.reopen_task(task_id)
        except APIError as e:
            self.logger.error(f"[SyncEngine] Failed to reopen task {task_id}: {e}")
            return False
        await self.file_operation.incomplete_task_in_file(task_id)
        self.cache.reopen_task(task_id)
        self.notifier.notify(format_task_reopened(task_id))
        return True

    # Remote changes

    def _select_events(self, events: List[Event]) -> List[Event]:
        own_client = self.settings.SYNC_CLIENT_NAME.lower()
        known = self.cache.known_task_ids()
        selected = []
        for event in events:
            if self.cache.is_event_processed(event.id):
                continue
            if own_client and own_client in event.client.lower():
                continue
            if event.is_item_event and event.object_id in known:
                selected.append(event)
            elif event.is_note_event and event.parent_item_id in known:
                selected.append(event)
            elif event.is_project_event:
                selected.append(event)
        return sorted(selected, key=lambda event: event.event_date or "")

    async def _replay_due_change(self, task: Task, extra: dict):
        new_due = extra.get("due_date")
        new_date = iso_to_local_date(new_due)
        new_time = iso_to_local_time(new_due)
        cached_time = task.due_time[:5] if task.due_time else None
        if new_date == task.due_date and new_time == cached_time:
            return

        await self.file_operation.sync_updated_task_due_date_to_file(task.id, new_due)

        remote = await self.client.get_task_by_id(task.id)
        if remote:
            fresh = Task.from_api(remote, task.path)
            self.cache.update_task_fields(task.id, due_date=fresh.due_date, due_datetime=fresh.due_datetime)
        else:
            self.cache.update_task_fields(
                task.id,
                due_date=new_date,
                due_datetime=f"{new_date}T{new_time}:00" if new_date and new_time else None,
            )

    async def _replay_event(self, event: Event):
        if event.is_project_event:
            await self.project_cache.refresh(force_refresh=True)
            return

        if event.is_note_event:
            if event.event_type == "added" and self.settings.COMMENTS_SYNC:
                await self.file_operation.sync_added_task_note_to_file(
                    event.parent_item_id,
                    format_event_datetime(event.event_date),
                    str(event.extra_data.get("content", "")),
                )
            return

        task_id = event.object_id
        if event.event_type == "completed":
            await self.file_operation.complete_task_in_file(task_id)
            self.cache.close_task(task_id)
            self.notifier.notify(format_task_completed(task_id))
        elif event.event_type == "uncompleted":
            await self.file_operation.incomplete_task_in_file(task_id)
            self.cache.reopen_task(task_id)
            self.notifier.notify(format_task_reopened(task_id))
        elif event.event_type == "updated":
            task = self.cache.load_task(task_id)
            if task is None:
                return
            extra = event.extra_data
            if "due_date" in extra or "last_due_date" in extra:
                await self._replay_due_change(task, extra)
            new_content = extra.get("content")
            if new_content and new_content != task.content:
                await self.file_operation.sync_updated_task_content_to_file(task_id, task.content, new_content)
                self.cache.update_task_fields(task_id, content=new_content)
        else:
            self.logger.debug(f"[SyncEngine] Ignoring {event.event_type} event for task {task_id}")

    async def sync_remote_to_documents(self) -> int:
        """
        Replay new Todoist activity onto the vault

        Returns:
            Number of events replayed
        """
        try:
            events = await self.client.get_activity_events()
        except APIError as e:
            self.logger.error(f"[SyncEngine] Failed to fetch activity events: {e}")
            return 0

        processed: List[Event] = []
        for event in self._select_events(events):
            try:
                await self._replay_event(event)
            except SyncError as e:
                self.logger.error(f"[SyncEngine] Failed to replay event {event.id}: {e}")
                continue
            # Recorded one by one so a later failure cannot replay earlier edits
            self.cache.append_events([event])
            processed.append(event)

        if processed:
            self.logger.info(f"[SyncEngine] Replayed {len(processed)} Todoist events")
        return len(processed)

    # Documents

    async def update_task_descriptions(self, path: str, task_ids: List[str]):
        """Point task descriptions at the document's current path"""
        description = self.parser.build_backlink(path)
        for task_id in task_ids:
            result = await self.client.update_task(task_id, {"description": description})
            if result.ok:
                self.cache.update_task_fields(task_id, description=description)
            else:
                self.logger.warning(f"[SyncEngine] Could not update description of task {task_id}")

    async def handle_document_renamed(self, old_path: str, new_path: str) -> List[str]:
        """
        Move tasks to a renamed document

        Args:
            old_path: Previous document path
            new_path: New document path

        Returns:
            Ids of the moved tasks
        """
        task_ids = self.cache.rename_file(old_path, new_path)
        if task_ids:
            await self.update_task_descriptions(new_path, task_ids)
        return task_ids

    async def purge_orphaned_tasks(self):
        purged = self.cache.purge_orphaned_tasks()
        if purged:
            self.logger.info(f"[SyncEngine] Purged detached tasks: {purged}")

    async def scheduled_synchronization(self):
        """
        Full sync cycle

        Remote changes are pulled first. Then every known document (or every
        document in full vault mode) runs the new, deleted and modified
        passes in that order, each under the lock.
        """
        self.logger.info("[SyncEngine] Scheduled synchronization started")
        await self.run_locked("remote pull", self.sync_remote_to_documents)

        paths = self.cache.list_files()
        if self.settings.ENABLE_FULL_VAULT_SYNC:
            paths += [path for path in self.store.list_documents() if path not in paths]

        for path in paths:
            if not self.store.exists(path):
                self.logger.debug(f"[SyncEngine] Skipping missing document {path}")
                continue
            await self.run_locked(f"new task check of {path}", self.new_task_check_document, path)
            await self.run_locked(f"deleted task check of {path}", self.deleted_task_check, path)
            await self.run_locked(f"modified task check of {path}", self.modified_task_check_document, path)

        await self.run_locked("orphan purge", self.purge_orphaned_tasks)
        self.logger.info("[SyncEngine] Scheduled synchronization finished")
