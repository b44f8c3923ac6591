"""
Polling watcher for documents edited outside the sync process
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional
from tdsync.services.document_store import VaultDocumentStore
from tdsync.utils.logger import logger


class DocumentWatcher:
    """Reports vault documents whose modification time changed"""
    
    def __init__(
        self,
        store: VaultDocumentStore,
        on_modified: Callable[[str], Awaitable[None]],
        interval: float = 5,
    ):
        """
        Initialize document watcher
        
        Args:
            store: Vault document store
            on_modified: Coroutine called with the path of a changed document
            interval: Polling interval in seconds
        """
        self.store = store
        self.on_modified = on_modified
        self.interval = interval
        self.logger = logger
        self._mtimes: Dict[str, Optional[float]] = {}
        self._running = False
    
    def snapshot(self):
        """Remember current modification times without reporting them"""
        self._mtimes = {path: self.store.get_modified_time(path) for path in self.store.list_documents()}
    
    def poll(self) -> List[str]:
        """
        Compare modification times with the last poll
        
        Returns:
            Paths of new or modified documents
        """
        changed = []
        current = {}
        for path in self.store.list_documents():
            mtime = self.store.get_modified_time(path)
            current[path] = mtime
            if self._mtimes.get(path) != mtime:
                changed.append(path)
        self._mtimes = current
        return changed
    
    async def run(self):
        """Poll until stopped"""
        self._running = True
        self.snapshot()
        while self._running:
            await asyncio.sleep(self.interval)
            for path in self.poll():
                self.logger.debug(f"[Watcher] Document changed: {path}")
                await self.on_modified(path)
    
    def stop(self):
        self._running = False
