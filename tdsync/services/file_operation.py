"""
Document rewrite primitives for synced task lines
"""

from typing import Callable, Optional
from tdsync.services.document_store import VaultDocumentStore
from tdsync.services.task_cache import TaskCacheService
from tdsync.services.task_parser import TaskParser
from tdsync.utils.date_parser import iso_to_local_date, iso_to_local_time
from tdsync.utils.logger import logger


class FileOperation:
    """Applies line-level changes to the documents that own tasks"""

    def __init__(self, store: VaultDocumentStore, parser: TaskParser, cache: TaskCacheService):
        """
        Initialize file operation service

        Args:
            store: Vault document store
            parser: Task parser providing the line rewrites
            cache: Task cache used to locate a task's document
        """
        self.store = store
        self.parser = parser
        self.cache = cache
        self.logger = logger

    def _task_path(self, task_id: str) -> Optional[str]:
        task = self.cache.load_task(task_id)
        if task is None or not task.path:
            self.logger.warning(f"[FileOperation] No document known for task {task_id}")
            return None
        return task.path

    async def rewrite_task_line(
        self,
        task_id: str,
        rewrite: Callable[[str], str],
        path: Optional[str] = None,
    ) -> bool:
        """
        Rewrite the line that carries a task id

        Args:
            task_id: Task ID
            rewrite: Function from old line to new line
            path: Document path (defaults to the cached task path)

        Returns:
            True if the document was changed
        """
        path = path or self._task_path(task_id)
        if path is None:
            return False
        if not self.store.exists(path):
            self.logger.warning(f"[FileOperation] Document {path} of task {task_id} does not exist")
            return False

        content = await self.store.read_document(path)
        lines = content.split("\n")
        for index, line in enumerate(lines):
            if self.parser.get_task_id(line) != task_id:
                continue
            new_line = rewrite(line)
            if new_line == line:
                return False
            lines[index] = new_line
            await self.store.write_document(path, "\n".join(lines))
            return True

        self.logger.debug(f"[FileOperation] Task {task_id} not found in {path}")
        return False

    async def complete_task_in_file(self, task_id: str) -> bool:
        return await self.rewrite_task_line(task_id, lambda line: self.parser.set_checkbox(line, True))

    async def incomplete_task_in_file(self, task_id: str) -> bool:
        return await self.rewrite_task_line(task_id, lambda line: self.parser.set_checkbox(line, False))

    async def sync_updated_task_content_to_file(self, task_id: str, old_content: str, new_content: str) -> bool:
        """Replace the old task content inside its line"""
        return await self.rewrite_task_line(
            task_id, lambda line: self.parser.replace_content(line, old_content, new_content)
        )

    async def sync_updated_task_due_date_to_file(self, task_id: str, due_value: Optional[str]) -> bool:
        """
        Apply a remote due change to the task line

        Args:
            task_id: Task ID
            due_value: New due date or datetime from Todoist, empty to remove

        Returns:
            True if the document was changed
        """
        new_date = iso_to_local_date(due_value)
        new_time = iso_to_local_time(due_value)

        def rewrite(line: str) -> str:
            if not new_date:
                return self.parser.remove_due(line)

            line_date = self.parser.get_due_date(line)
            if line_date is None:
                line = self.parser.insert_due_date(line, new_date)
            elif line_date != new_date:
                line = self.parser.replace_due_date(line, new_date)

            if new_time:
                line_time = self.parser.get_due_time(line)
                if line_time is None:
                    line = self.parser.insert_due_time(line, new_time)
                elif line_time != new_time:
                    line = self.parser.replace_due_time(line, new_time)
            return line

        return await self.rewrite_task_line(task_id, rewrite)

    async def sync_added_task_note_to_file(self, task_id: str, event_datetime: str, note: str) -> bool:
        """
        Insert a Todoist comment as a child line below its task

        Args:
            task_id: Task the comment belongs to
            event_datetime: Local time of the comment
            note: Comment text

        Returns:
            True if the document was changed
        """
        path = self._task_path(task_id)
        if path is None or not self.store.exists(path):
            return False

        content = await self.store.read_document(path)
        lines = content.split("\n")
        for index, line in enumerate(lines):
            if self.parser.get_task_id(line) == task_id:
                lines.insert(index + 1, self.parser.build_note_line(line, event_datetime, note))
                await self.store.write_document(path, "\n".join(lines))
                return True
        return False

    async def flag_missing_task_in_file(self, path: str, task_id: str) -> bool:
        """Mark a line whose task is gone from Todoist and stop syncing it"""
        return await self.rewrite_task_line(
            task_id,
            lambda line: self.parser.remove_sync_tag(self.parser.add_missing_flag(line)),
            path=path,
        )

    async def detach_task_in_file(self, path: str, task_id: str) -> bool:
        """Drop id link and missing flag so the line is created again"""
        return await self.rewrite_task_line(
            task_id,
            lambda line: self.parser.add_sync_tag(
                self.parser.remove_task_link(self.parser.remove_missing_flag(line))
            ),
            path=path,
        )

    async def add_sync_tag_to_file(self, path: str, autofix: bool = False) -> bool:
        """
        Add the sync tag to every unsynced checkbox line of a document

        Flagged lines are left alone unless autofix is set, in which case
        the missing flag is removed and the line synced again.

        Args:
            path: Document path
            autofix: Repair lines flagged as missing

        Returns:
            True if the document was changed
        """
        content = await self.store.read_document(path)
        lines = content.split("\n")
        modified = False

        for index, line in enumerate(lines):
            if not self.parser.is_checkbox_line(line):
                continue
            if self.parser.has_missing_flag(line):
                if not autofix:
                    continue
                line = self.parser.remove_task_link(self.parser.remove_missing_flag(line))
            if self.parser.has_task_id(line) or self.parser.has_sync_tag(line):
                continue
            _, residual = self.parser.extract_tokens(line)
            if not residual.strip():
                continue
            lines[index] = self.parser.add_sync_tag(line)
            modified = True

        if modified:
            await self.store.write_document(path, "\n".join(lines))
            self.logger.info(f"[FileOperation] Added sync tag to tasks in {path}")
        return modified
