"""Tests for archive backends."""

import sqlite3
from pathlib import Path

import pytest

from ctxbuf.archive import InMemoryArchive, SqliteArchive
from ctxbuf.errors import ArchiveError
from ctxbuf.item import ContextCategory, ContextItem, ContextPriority


def _item(content: str = "remember the deploy key rotation", **kw: object) -> ContextItem:
    fields: dict[str, object] = {
        "content": content,
        "category": ContextCategory.MEMORY,
        "priority": ContextPriority.MEDIUM,
        "token_count": 6,
        "inserted_at": 4,
        "metadata": {"source": "notes"},
    }
    fields.update(kw)
    return ContextItem.model_validate(fields)


def test_in_memory_archive_store_and_retrieve():
    archive = InMemoryArchive()
    item = _item()
    key = archive.store(item)
    assert key == item.item_id
    assert archive.retrieve(key) == item
    assert archive.retrieve("missing") is None
    assert len(archive) == 1
    assert archive.items == [item]


def test_sqlite_archive_round_trip(tmp_path: Path):
    archive = SqliteArchive(db_path=tmp_path / "archive.db")
    item = _item(priority=ContextPriority.HIGH)

    key = archive.store(item)
    restored = archive.retrieve(key)
    assert restored is not None
    assert restored.content == item.content
    assert restored.priority is ContextPriority.HIGH
    assert restored.category is ContextCategory.MEMORY
    assert restored.metadata == {"source": "notes"}
    assert restored.inserted_at == 4
    assert archive.retrieve("missing") is None

    archive.close()


def test_sqlite_archive_same_item_stored_once(tmp_path: Path):
    archive = SqliteArchive(db_path=tmp_path / "archive.db")
    item = _item()
    archive.store(item)
    archive.store(item)
    archive.store(_item("something else"))
    assert archive.count() == 2
    archive.close()


def test_sqlite_archive_persists_across_connections(tmp_path: Path):
    db = tmp_path / "archive.db"
    item = _item()
    first = SqliteArchive(db_path=db)
    first.store(item)
    first.close()

    second = SqliteArchive(db_path=db)
    assert second.retrieve(item.item_id) is not None
    second.close()


def test_sqlite_archive_write_failure_raises_archive_error(tmp_path: Path):
    db = tmp_path / "archive.db"
    archive = SqliteArchive(db_path=db)
    conn = sqlite3.connect(db)
    conn.execute("DROP TABLE archived_items")
    conn.commit()
    conn.close()

    with pytest.raises(ArchiveError, match="failed to archive"):
        archive.store(_item())
    archive.close()
