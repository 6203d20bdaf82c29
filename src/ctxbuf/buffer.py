"""Context buffer — the bounded, token-budgeted store the agent loop talks to."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .archive import Archive
from .budget import BudgetTracker
from .config import BufferConfig
from .errors import AddResult, ErrorKind, TokenizationError, TokenizerError
from .eviction import ALL_EVICTABLE_TIERS, DEFAULT_TIERS, EvictionEngine, EvictionResult
from .item import ContextCategory, ContextItem, ContextPriority
from .registry import ContextRegistry
from .stats import BufferStats
from .telemetry import BufferTracer
from .tokenizer import EstimateTokenizer, Tokenizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BufferSnapshot:
    """Point-in-time accounting view."""

    current_tokens: int
    max_tokens: int
    reserve_tokens: int
    usable_tokens: int
    item_count: int
    category_items: dict[str, int] = field(default_factory=dict)
    category_tokens: dict[str, int] = field(default_factory=dict)

    @property
    def utilization(self) -> float:
        return self.current_tokens / self.max_tokens


class ItemView:
    """Read-only, restartable view over buffer items.

    Nothing is read until iteration starts; every new iteration takes a fresh
    snapshot, so later mutations show up on the next pass.
    """

    def __init__(
        self,
        buffer: ContextBuffer,
        category: ContextCategory | None,
        min_priority: ContextPriority | None,
    ) -> None:
        self._buffer = buffer
        self._category = category
        self._min_priority = min_priority

    def __iter__(self) -> Iterator[ContextItem]:
        yield from self._buffer._select(self._category, self._min_priority)

    def __len__(self) -> int:
        return len(self._buffer._select(self._category, self._min_priority))


class ContextBuffer:
    """Holds context items under a hard token limit.

    ``add`` tokenizes outside the lock, then validates, evicts, inserts and
    commits under a single lock covering the registry and the budget.
    Evicted items of medium priority or better are written to the archive in
    background threads; ``drain()`` waits for those writes.

    Usage::

        buf = ContextBuffer(BufferConfig(max_tokens=8192), TiktokenTokenizer(), archive)
        result = await buf.add(source, "code", "medium", {"path": "app.py"})
        if not result.ok:
            ...
    """

    def __init__(
        self,
        config: BufferConfig | None = None,
        tokenizer: Tokenizer | None = None,
        archive: Archive | None = None,
        *,
        tracer: BufferTracer | None = None,
    ) -> None:
        self._config = config or BufferConfig()
        self._tokenizer = tokenizer or EstimateTokenizer()
        self._archive = archive
        self._tracer = tracer or BufferTracer()
        self._stats = BufferStats()

        self._budget = BudgetTracker(self._config.max_tokens, self._config.buffer_ratio)
        self._registry = ContextRegistry()
        tiers = ALL_EVICTABLE_TIERS if self._config.evict_high_priority else DEFAULT_TIERS
        self._engine = EvictionEngine(self._registry, tiers)

        self._lock = threading.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_env(
        cls,
        tokenizer: Tokenizer | None = None,
        archive: Archive | None = None,
    ) -> ContextBuffer:
        """Create a buffer configured from ``CTXBUF_*`` environment variables."""
        return cls(BufferConfig.from_env(), tokenizer, archive)

    # ----- mutation --------------------------------------------------------

    async def add(
        self,
        content: str,
        category: ContextCategory | str,
        priority: ContextPriority | str | int,
        metadata: dict[str, str] | None = None,
    ) -> AddResult:
        """Tokenize and insert *content*, evicting lower-value items if needed.

        Returns an ``AddResult``; failures (tokenization, capacity) leave the
        buffer unchanged. Raises ``ValueError`` for an unknown category or
        priority and ``pydantic.ValidationError`` for metadata that is not a
        str-to-str mapping; the buffer is unchanged in both cases.
        """
        cat = ContextCategory(category)
        prio = ContextPriority.parse(priority)

        with self._tracer.span(
            "buffer/add",
            {"ctxbuf.category": cat.value, "ctxbuf.priority": prio.label},
        ) as span:
            try:
                tokens = await self._count(content)
            except TokenizationError as e:
                return self._reject(ErrorKind.TOKENIZATION_FAILURE, str(e))
            span.set_attribute("ctxbuf.tokens", tokens)

            with self._lock:
                result, eviction = self._admit(content, cat, prio, tokens, metadata)

            if eviction is not None:
                span.set_attribute("ctxbuf.evicted", len(eviction.evictions))
                self._record_eviction(eviction)
                if self._archive is not None:
                    self._dispatch_archive(eviction.to_archive)
            return result

    def remove(self, item_id: str) -> bool:
        """Delete an item. False when it is not present."""
        with self._lock:
            item = self._registry.remove(item_id)
            if item is None:
                return False
            self._budget.release(item.token_count)
        self._stats.record_removal()
        logger.debug("Removed %s (%d tokens)", item_id, item.token_count)
        return True

    def reset(self) -> None:
        """Drop every item and zero the budget. Pending archive writes continue."""
        with self._lock:
            count = len(self._registry)
            self._registry.clear()
            self._budget.reset()
        logger.info("Context buffer reset (%d items dropped)", count)

    async def drain(self) -> None:
        """Wait for every archive write scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ----- queries ---------------------------------------------------------

    def get(self, item_id: str) -> ContextItem | None:
        with self._lock:
            return self._registry.get(item_id)

    def query(
        self,
        category: ContextCategory | str | None = None,
        min_priority: ContextPriority | str | int | None = None,
    ) -> ItemView:
        """Items ordered most important first, then oldest first.

        ``min_priority`` keeps items at least as important as the given level,
        e.g. ``"medium"`` returns critical, high and medium items.
        """
        cat = ContextCategory(category) if category is not None else None
        prio = ContextPriority.parse(min_priority) if min_priority is not None else None
        return ItemView(self, cat, prio)

    def utilization(self) -> float:
        with self._lock:
            return self._budget.utilization()

    def snapshot(self) -> BufferSnapshot:
        with self._lock:
            return BufferSnapshot(
                current_tokens=self._budget.current,
                max_tokens=self._budget.max_tokens,
                reserve_tokens=self._budget.reserve,
                usable_tokens=self._budget.usable_tokens,
                item_count=len(self._registry),
                category_items={
                    c.value: len(self._registry.category_items(c)) for c in ContextCategory
                },
                category_tokens={
                    c.value: self._registry.category_tokens(c) for c in ContextCategory
                },
            )

    @property
    def config(self) -> BufferConfig:
        return self._config

    @property
    def stats(self) -> BufferStats:
        return self._stats

    @property
    def current_tokens(self) -> int:
        with self._lock:
            return self._budget.current

    @property
    def remaining_capacity(self) -> int:
        with self._lock:
            return self._budget.remaining_capacity()

    def __len__(self) -> int:
        with self._lock:
            return len(self._registry)

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._registry

    # ----- internals -------------------------------------------------------

    async def _count(self, content: str) -> int:
        timeout = self._config.tokenizer_timeout
        model_id = self._config.model_id
        try:
            coro = self._tokenizer.count(content, model_id)
            if timeout is not None:
                tokens = await asyncio.wait_for(coro, timeout)
            else:
                tokens = await coro
        except TimeoutError as e:
            msg = f"{self._tokenizer.name()} timed out after {timeout}s"
            raise TokenizationError(msg) from e
        except TokenizerError as e:
            raise TokenizationError(f"{self._tokenizer.name()} failed: {e}") from e
        except Exception as e:
            msg = f"{self._tokenizer.name()} raised {type(e).__name__}: {e}"
            raise TokenizationError(msg) from e

        if isinstance(tokens, bool) or not isinstance(tokens, int) or tokens < 0:
            msg = f"{self._tokenizer.name()} returned an invalid count: {tokens!r}"
            raise TokenizationError(msg)
        return tokens

    def _admit(  # noqa: PLR0913
        self,
        content: str,
        category: ContextCategory,
        priority: ContextPriority,
        tokens: int,
        metadata: dict[str, str] | None,
    ) -> tuple[AddResult, EvictionResult | None]:
        """Check-then-commit. Caller holds ``self._lock``.

        The item is built and validated before anything is evicted, so an
        invalid field raises with the buffer untouched.
        """
        item = self._registry.build(content, category, priority, tokens, metadata)
        usable = self._budget.usable_tokens
        if tokens > usable:
            msg = f"item of {tokens} tokens exceeds usable capacity ({usable})"
            return self._reject(ErrorKind.CAPACITY_EXCEEDED, msg, tokens), None

        need = max(0, tokens - self._budget.remaining_capacity())
        eviction: EvictionResult | None = None
        if need > 0:
            plan = self._engine.plan(need)
            if plan is None:
                msg = (
                    f"cannot free {need} tokens for a {priority.label} item: "
                    f"only {self._engine.evictable_tokens()} evictable"
                )
                return self._reject(ErrorKind.CAPACITY_EXCEEDED, msg, tokens), None
            eviction = self._engine.apply(plan)
            self._budget.release(eviction.freed)

        self._registry.store(item)
        self._budget.commit(item.token_count)
        self._stats.record_add()

        archived: list[str] = []
        evicted: list[str] = []
        if eviction is not None:
            evicted = eviction.evicted_ids
            if self._archive is not None:
                archived = [i.item_id for i in eviction.to_archive]
        return AddResult.success(item.item_id, tokens, evicted, archived), eviction

    def _select(
        self,
        category: ContextCategory | None,
        min_priority: ContextPriority | None,
    ) -> list[ContextItem]:
        with self._lock:
            if category is None:
                pool = self._registry.items()
            else:
                pool = self._registry.category_items(category)
        if min_priority is not None:
            pool = [i for i in pool if i.priority <= min_priority]
        return sorted(pool, key=lambda i: (i.priority, i.inserted_at))

    def _reject(self, kind: ErrorKind, message: str, tokens: int = 0) -> AddResult:
        self._stats.record_rejection(kind)
        logger.info("Add rejected (%s): %s", kind.value, message)
        return AddResult.failure(kind, message, tokens)

    def _record_eviction(self, eviction: EvictionResult) -> None:
        for e in eviction.evictions:
            self._stats.record_eviction(e.item.token_count, archived=e.archive)
        self._tracer.record_event(
            "buffer/evict",
            {
                "ctxbuf.freed": eviction.freed,
                "ctxbuf.evicted": len(eviction.evictions),
                "ctxbuf.promoted": len(eviction.to_archive),
            },
        )

    def _dispatch_archive(self, items: list[ContextItem]) -> None:
        """Fire-and-forget archive writes; ``add`` does not wait for them."""
        loop = asyncio.get_running_loop()
        for item in items:
            task = loop.create_task(asyncio.to_thread(self._archive_one, item))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    def _archive_one(self, item: ContextItem) -> None:
        assert self._archive is not None
        attrs: dict[str, Any] = {
            "ctxbuf.item_id": item.item_id,
            "ctxbuf.priority": item.priority.label,
        }
        with self._tracer.span("buffer/archive", attrs):
            try:
                key = self._archive.store(item)
            except Exception:
                # The item is already out of the buffer; nothing to roll back.
                self._stats.record_archive_write(ok=False)
                logger.warning("Archive write failed for %s", item.item_id, exc_info=True)
                return
        self._stats.record_archive_write(ok=True)
        logger.debug("Archived %s as %s", item.item_id, key)
