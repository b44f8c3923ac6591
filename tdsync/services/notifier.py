"""
User-facing notices
"""

from typing import Callable, List
from tdsync.utils.logger import logger


class Notifier:
    """Fans out notices to subscribers and keeps the recent ones"""

    def __init__(self, history_size: int = 100):
        self.logger = logger
        self.history_size = history_size
        self.messages: List[str] = []
        self._subscribers: List[Callable[[str], None]] = []

    def subscribe(self, callback: Callable[[str], None]):
        self._subscribers.append(callback)

    def notify(self, message: str):
        """
        Publish a notice

        Args:
            message: Readable message
        """
        self.logger.info(f"[Notice] {message}")
        self.messages.append(message)
        del self.messages[:-self.history_size]
        for callback in self._subscribers:
            try:
                callback(message)
            except Exception as e:
                self.logger.warning(f"[Notice] Subscriber failed: {e}")
