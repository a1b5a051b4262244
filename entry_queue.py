"""
Entry queue for the Traffic Log Shipper
Bounded, non-blocking FIFO shared between producers and the flush worker
"""

import threading
from collections import deque
from typing import List

from log_entry import LogEntry


MAX_QUEUE_SIZE = 10000


class EntryQueue:
    """Thread-safe bounded FIFO that drops new entries when full"""

    def __init__(self, max_size: int = MAX_QUEUE_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries = deque()
        self._lock = threading.Lock()

    def offer(self, entry: LogEntry) -> bool:
        """
        Add an entry if there is room

        Never blocks and never evicts queued entries.

        Returns:
            True if the entry was queued, False if the queue is full
        """
        with self._lock:
            if len(self._entries) >= self.max_size:
                return False
            self._entries.append(entry)
            return True

    def drain_all(self) -> List[LogEntry]:
        """Remove and return every queued entry, oldest first"""
        with self._lock:
            batch = list(self._entries)
            self._entries.clear()
        return batch

    def clear(self) -> int:
        """Discard all queued entries, returning how many were dropped"""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        return self.size() == 0

    def __len__(self) -> int:
        return self.size()
