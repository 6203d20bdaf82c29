"""ctxbuf session demo.

Walks a small agent session through the buffer:
1. Pin a critical system prompt
2. Fill the buffer with code excerpts and user turns
3. Trigger eviction; low items are dropped, medium+ go to the SQLite archive
4. Show an oversized add being rejected without touching state

Uses the word-count estimate tokenizer -- no model or network needed.

Run: pip install -e . && python examples/context_session.py
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path

from ctxbuf import BufferConfig, ContextBuffer, EstimateTokenizer, SqliteArchive


def _check(condition: bool, msg: str) -> None:  # noqa: FBT001
    """Raise RuntimeError if *condition* is False (demo validation)."""
    if not condition:
        raise RuntimeError(msg)


def _report(buf: ContextBuffer, label: str) -> None:
    snap = buf.snapshot()
    print(
        f"  {label:<28} {snap.current_tokens:>4}/{snap.usable_tokens} usable"
        f"  ({buf.utilization():.0%} of {snap.max_tokens}), {snap.item_count} items"
    )


async def run_demo(db_path: Path) -> None:
    print("=" * 60)
    print("ctxbuf session demo")
    print("=" * 60)

    archive = SqliteArchive(db_path)
    buf = ContextBuffer(BufferConfig(max_tokens=200, buffer_ratio=0.2), EstimateTokenizer(), archive)

    print("\n[1/4] Pinning the system prompt...")
    system = await buf.add(
        "You are a careful coding assistant. Prefer small, reviewed changes.",
        "system",
        "critical",
    )
    _check(system.ok, "system prompt rejected")
    _report(buf, "after system prompt")

    print("\n[2/4] Adding code excerpts and user turns...")
    for i in range(4):
        excerpt = " ".join(f"line{i}_{n}" for n in range(25))
        result = await buf.add(excerpt, "code", "low", {"path": f"mod{i}.py"})
        _check(result.ok, f"excerpt {i} rejected")
    note = await buf.add(" ".join(["decision"] * 20), "memory", "medium")
    _check(note.ok, "memory note rejected")
    _report(buf, "after excerpts")

    print("\n[3/4] Adding a long user turn (forces eviction)...")
    turn = await buf.add(" ".join(["please"] * 100), "user", "high")
    _check(turn.ok, "user turn rejected")
    print(f"  evicted {len(turn.evicted)} items, archived {len(turn.archived)}")
    await buf.drain()
    _report(buf, "after eviction")
    print(f"  archive rows: {archive.count()}")

    print("\n[4/4] Adding an oversized item...")
    before = buf.utilization()
    big = await buf.add(" ".join(["x"] * 200), "code", "critical")
    _check(not big.ok, "oversized item was accepted")
    _check(buf.utilization() == before, "rejected add changed state")
    print(f"  rejected: {big.error.kind.value if big.error else '?'}")
    _report(buf, "unchanged")

    print("\nStats:", buf.stats.summary())
    archive.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(run_demo(Path(tmp) / "archive.db"))
