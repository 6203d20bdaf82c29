"""Archive — out-of-band storage for items demoted out of the buffer."""

from __future__ import annotations

import hashlib
import json
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import ArchiveError
from .item import ContextItem


def _content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class Archive(ABC):
    """Write-only store from the buffer's point of view.

    ``store`` may be called from a worker thread.
    """

    @abstractmethod
    def store(self, item: ContextItem) -> str:
        """Persist *item* and return its archive key.

        Raises:
            ArchiveError: If the write fails.
        """


class InMemoryArchive(Archive):
    """List-backed archive (for testing and development)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, ContextItem] = {}

    def store(self, item: ContextItem) -> str:
        with self._lock:
            self._items[item.item_id] = item
        return item.item_id

    def retrieve(self, key: str) -> ContextItem | None:
        with self._lock:
            return self._items.get(key)

    @property
    def items(self) -> list[ContextItem]:
        with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class SqliteArchive(Archive):
    """SQLite-backed archive, one row per evicted item keyed by item id."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS archived_items (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                category TEXT NOT NULL,
                priority TEXT NOT NULL,
                token_count INTEGER NOT NULL,
                inserted_at INTEGER NOT NULL,
                metadata TEXT NOT NULL,
                archived_at REAL NOT NULL
            )"""
        )
        self._conn.commit()

    def store(self, item: ContextItem) -> str:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO archived_items"
                    " (id, content, content_hash, category, priority, token_count,"
                    " inserted_at, metadata, archived_at)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        item.item_id,
                        item.content,
                        _content_hash(item.content),
                        item.category.value,
                        item.priority.label,
                        item.token_count,
                        item.inserted_at,
                        json.dumps(dict(item.metadata)),
                        time.time(),
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise ArchiveError(f"failed to archive {item.item_id}: {e}") from e
        return item.item_id

    def retrieve(self, key: str) -> ContextItem | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, content, category, priority, token_count, inserted_at, metadata"
                " FROM archived_items WHERE id = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return ContextItem(
            item_id=row[0],
            content=row[1],
            category=row[2],
            priority=row[3],
            token_count=row[4],
            inserted_at=row[5],
            metadata=json.loads(row[6]),
        )

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM archived_items").fetchone()
        return int(row[0])

    def close(self) -> None:
        """Close the underlying database connection."""
        with self._lock:
            self._conn.close()
