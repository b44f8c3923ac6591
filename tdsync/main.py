"""
Main application entry point
"""

import asyncio
from typing import List, Optional
from tdsync.api.todoist_client import TodoistClient
from tdsync.config.settings import Settings, settings as default_settings
from tdsync.services.change_detector import ChangeDetector
from tdsync.services.document_store import VaultDocumentStore
from tdsync.services.document_watcher import DocumentWatcher
from tdsync.services.file_operation import FileOperation
from tdsync.services.notifier import Notifier
from tdsync.services.project_cache_service import ProjectCacheService
from tdsync.services.sync_engine import SyncEngine
from tdsync.services.sync_lock import SyncLock
from tdsync.services.task_cache import TaskCacheService
from tdsync.services.task_parser import TaskParser
from tdsync.utils.logger import logger


class TodoistSyncApp:
    """Main sync application"""
    
    def __init__(self, settings: Optional[Settings] = None):
        """Initialize application services"""
        self.settings = settings or default_settings
        self.client = TodoistClient(
            api_token=self.settings.TODOIST_API_TOKEN,
            base_url=self.settings.TODOIST_API_URL,
            client_name=self.settings.SYNC_CLIENT_NAME,
        )
        self.cache = TaskCacheService(
            self.settings.CACHE_FILE_PATH,
            stale_id_pattern=self.settings.STALE_TASK_ID_PATTERN,
        )
        self.store = VaultDocumentStore(self.settings.VAULT_PATH)
        self.project_cache = ProjectCacheService(self.client, self.cache)
        self.parser = TaskParser(self.cache, self.project_cache, self.settings)
        self.file_operation = FileOperation(self.store, self.parser, self.cache)
        self.lock = SyncLock()
        self.notifier = Notifier()
        self.engine = SyncEngine(
            client=self.client,
            cache=self.cache,
            store=self.store,
            parser=self.parser,
            file_operation=self.file_operation,
            change_detector=ChangeDetector(self.cache),
            project_cache=self.project_cache,
            lock=self.lock,
            notifier=self.notifier,
            settings=self.settings,
        )
        self.watcher = DocumentWatcher(self.store, self.on_document_modified, self.settings.WATCH_INTERVAL)
        self._tasks: List[asyncio.Task] = []
        self._running = False
        self.logger = logger
    
    # Host events
    
    async def on_text_changed(self, path: str, line_index: int):
        """Editor changed a line; wait for the editor to settle, then sync new tasks"""
        await asyncio.sleep(self.settings.TEXT_CHANGE_DELAY)
        await self.engine.run_locked("new task check of line", self.engine.new_task_check_line, path, line_index)
    
    async def _check_line(self, path: str, line_index: int):
        content = await self.store.read_document(path)
        lines = content.split("\n")
        if 0 <= line_index < len(lines):
            await self.engine.modified_task_check_line(path, lines[line_index], line_index, content)
    
    async def on_cursor_line_left(self, path: str, line_index: int):
        """Cursor left a line that may have been edited"""
        await self.engine.run_locked("modified task check of line", self._check_line, path, line_index)
    
    async def _toggle_line(self, path: str, line_index: int):
        content = await self.store.read_document(path)
        lines = content.split("\n")
        if not 0 <= line_index < len(lines):
            return
        line = lines[line_index]
        task_id = self.parser.get_task_id(line)
        if task_id and self.parser.has_sync_tag(line):
            if self.parser.is_completed(line):
                await self.engine.close_task(task_id)
            else:
                await self.engine.reopen_task(task_id)
        else:
            await self.engine.modified_task_check_document(path)
    
    async def on_checkbox_toggled(self, path: str, line_index: int):
        """Checkbox clicked in the editor"""
        await self.engine.run_locked("checkbox toggle", self._toggle_line, path, line_index)
    
    async def on_line_deleted(self, path: str):
        await self.engine.run_locked(f"deleted task check of {path}", self.engine.deleted_task_check, path)
    
    async def on_document_modified(self, path: str):
        """Document changed outside the editor"""
        await self.engine.run_locked(f"new task check of {path}", self.engine.new_task_check_document, path)
    
    async def on_document_renamed(self, old_path: str, new_path: str):
        await self.engine.run_locked(
            f"rename of {old_path}", self.engine.handle_document_renamed, old_path, new_path
        )
    
    # Lifecycle
    
    async def _delay_startup(self):
        """Hold the sync lock so early triggers are skipped"""
        self.logger.info(f"Delaying sync for {self.settings.DELAYED_SYNC_SECONDS} seconds...")
        async with self.lock.hold():
            await asyncio.sleep(self.settings.DELAYED_SYNC_SECONDS)
    
    async def _periodic_sync(self):
        while self._running:
            await self.engine.scheduled_synchronization()
            await asyncio.sleep(self.settings.AUTOMATIC_SYNC_INTERVAL)
    
    async def start(self):
        """Start the sync loop"""
        self.settings.validate()
        
        self.logger.info("Loading Todoist projects...")
        await self.project_cache.refresh(force_refresh=True)
        
        if self.settings.DELAYED_SYNC:
            await self._delay_startup()
        
        self._running = True
        self._tasks = [
            asyncio.create_task(self._periodic_sync()),
            asyncio.create_task(self.watcher.run()),
        ]
        self.logger.info(f"Sync started for vault {self.settings.VAULT_PATH}")
        await asyncio.gather(*self._tasks)
    
    async def stop(self):
        """Stop the sync loop"""
        self.logger.info("Stopping sync...")
        self._running = False
        self.watcher.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.client.close()
        self.logger.info("Sync stopped")


async def main():
    """Main entry point"""
    app = TodoistSyncApp()
    
    try:
        await app.start()
    except (KeyboardInterrupt, asyncio.CancelledError):
        await app.stop()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await app.stop()
        raise


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
