"""Buffer statistics — side channel for evictions and archive outcomes."""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field

from .errors import ErrorKind


@dataclass
class BufferStats:
    """Counters updated by ``ContextBuffer``.

    Archive writes finish in worker threads, hence the lock.
    """

    adds: int = 0
    removals: int = 0
    evictions: int = 0
    evicted_tokens: int = 0
    discarded: int = 0
    promoted: int = 0
    archive_writes: int = 0
    archive_failures: int = 0
    rejected: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_add(self) -> None:
        with self._lock:
            self.adds += 1

    def record_removal(self) -> None:
        with self._lock:
            self.removals += 1

    def record_rejection(self, kind: ErrorKind) -> None:
        with self._lock:
            self.rejected[kind.value] += 1

    def record_eviction(self, tokens: int, archived: bool) -> None:
        with self._lock:
            self.evictions += 1
            self.evicted_tokens += tokens
            if archived:
                self.promoted += 1
            else:
                self.discarded += 1

    def record_archive_write(self, ok: bool) -> None:
        with self._lock:
            if ok:
                self.archive_writes += 1
            else:
                self.archive_failures += 1

    def summary(self) -> dict:
        with self._lock:
            return {
                "adds": self.adds,
                "removals": self.removals,
                "evictions": self.evictions,
                "evicted_tokens": self.evicted_tokens,
                "discarded": self.discarded,
                "promoted": self.promoted,
                "archive_writes": self.archive_writes,
                "archive_failures": self.archive_failures,
                "rejected": dict(self.rejected),
            }
