"""Counts how often documents are retrieved."""

import threading
from collections import Counter


class AccessTracker:
    """Thread-safe retrieval counter, used as a last-resort ranking."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def track(self, doc_id: str) -> int:
        """Count one access; return the new total for `doc_id`."""
        with self._lock:
            self._counts[doc_id] += 1
            return self._counts[doc_id]

    def count(self, doc_id: str) -> int:
        with self._lock:
            return self._counts[doc_id]

    def most_frequent(self, limit: int = 10) -> list[str]:
        """Ids by descending access count; ties in first-access order."""
        with self._lock:
            return [doc_id for doc_id, _ in self._counts.most_common(limit)]
