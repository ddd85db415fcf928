"""Ephemeral in-memory search history.

Most recent query first, no duplicates, capped at a fixed size.
Nothing is written to disk; history is lost when the process exits.
"""

import threading


class SearchHistory:
    """Bounded most-recent-first list of queries.

    Args:
        max_size: Number of queries kept (0 disables recording).
    """

    def __init__(self, max_size: int = 10):
        self.max_size = max_size
        self._items: list[str] = []
        self._lock = threading.Lock()

    def record(self, query: str) -> None:
        """Move ``query`` to the front, dropping blanks and the oldest overflow."""
        query = (query or "").strip()
        if not query or self.max_size <= 0:
            return
        with self._lock:
            self._items = [query, *(q for q in self._items if q != query)][: self.max_size]

    def items(self) -> list[str]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
