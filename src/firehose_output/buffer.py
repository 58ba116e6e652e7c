from __future__ import annotations

import threading
from collections import deque


class EventBuffer:
    """Thread-safe FIFO of encoded records with atomic bulk removal."""

    def __init__(self) -> None:
        self._records: deque[bytes] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def push(self, record: bytes) -> None:
        with self._lock:
            self._records.append(record)

    def drain_one(self) -> bytes | None:
        with self._lock:
            if not self._records:
                return None
            return self._records.popleft()

    def drain_up_to(self, n: int) -> list[bytes]:
        if n <= 0:
            raise ValueError("n must be > 0")

        with self._lock:
            count = min(n, len(self._records))
            return [self._records.popleft() for _ in range(count)]
