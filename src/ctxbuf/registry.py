"""Context item registry — in-memory catalog partitioned by category."""

from __future__ import annotations

import itertools
from collections.abc import Iterator

from .item import ContextCategory, ContextItem, ContextPriority


class ContextRegistry:
    """Owns every stored item, indexed three ways.

    * by id, for lookup and removal
    * by category, the mutually exclusive reporting partitions
    * by priority tier, for eviction scanning

    Insertion order of the per-tier dicts equals ``inserted_at`` order because
    sequence numbers only grow, so each tier is already sorted oldest first
    and removal stays O(1).
    """

    def __init__(self) -> None:
        self._items: dict[str, ContextItem] = {}
        self._by_category: dict[ContextCategory, dict[str, None]] = {
            c: {} for c in ContextCategory
        }
        self._by_priority: dict[ContextPriority, dict[str, None]] = {
            p: {} for p in ContextPriority
        }
        self._tier_tokens: dict[ContextPriority, int] = {p: 0 for p in ContextPriority}
        self._seq = itertools.count(1)

    # ----- mutation --------------------------------------------------------

    def insert(  # noqa: PLR0913
        self,
        content: str,
        category: ContextCategory,
        priority: ContextPriority,
        token_count: int,
        metadata: dict[str, str] | None = None,
        *,
        item_id: str | None = None,
    ) -> ContextItem:
        """Create and store an item, stamping the next sequence number."""
        item = self.build(content, category, priority, token_count, metadata, item_id=item_id)
        self.store(item)
        return item

    def build(  # noqa: PLR0913
        self,
        content: str,
        category: ContextCategory,
        priority: ContextPriority,
        token_count: int,
        metadata: dict[str, str] | None = None,
        *,
        item_id: str | None = None,
    ) -> ContextItem:
        """Validate a new item without storing it.

        Raises:
            pydantic.ValidationError: If any field is invalid.
        """
        fields: dict[str, object] = {
            "content": content,
            "category": category,
            "priority": priority,
            "token_count": token_count,
            "inserted_at": next(self._seq),
            "metadata": metadata,
        }
        if item_id is not None:
            fields["item_id"] = item_id
        return ContextItem.model_validate(fields)

    def store(self, item: ContextItem) -> None:
        """Add an item returned by ``build``."""
        if item.item_id in self._items:
            msg = f"duplicate item id '{item.item_id}'"
            raise ValueError(msg)
        self._items[item.item_id] = item
        self._by_category[item.category][item.item_id] = None
        self._by_priority[item.priority][item.item_id] = None
        self._tier_tokens[item.priority] += item.token_count

    def remove(self, item_id: str) -> ContextItem | None:
        """Drop an item. Returns None when the id is not present."""
        item = self._items.pop(item_id, None)
        if item is None:
            return None
        del self._by_category[item.category][item_id]
        del self._by_priority[item.priority][item_id]
        self._tier_tokens[item.priority] -= item.token_count
        return item

    def clear(self) -> None:
        self._items.clear()
        for ids in self._by_category.values():
            ids.clear()
        for ids in self._by_priority.values():
            ids.clear()
        for p in self._tier_tokens:
            self._tier_tokens[p] = 0

    # ----- lookup ----------------------------------------------------------

    def get(self, item_id: str) -> ContextItem | None:
        return self._items.get(item_id)

    def iter_tier(self, priority: ContextPriority) -> Iterator[ContextItem]:
        """Items of one priority across all categories, oldest first."""
        for item_id in self._by_priority[priority]:
            yield self._items[item_id]

    def tier_tokens(self, priority: ContextPriority) -> int:
        return self._tier_tokens[priority]

    def ordered(self, category: ContextCategory | None = None) -> list[ContextItem]:
        """Eviction-order view: least important first, oldest first within a tier."""
        if category is None:
            pool = self._items.values()
        else:
            pool = (self._items[i] for i in self._by_category[category])
        return sorted(pool, key=ContextItem.eviction_key)

    def category_items(self, category: ContextCategory) -> list[ContextItem]:
        return [self._items[i] for i in self._by_category[category]]

    def category_tokens(self, category: ContextCategory) -> int:
        return sum(self._items[i].token_count for i in self._by_category[category])

    def total_tokens(self) -> int:
        return sum(self._tier_tokens.values())

    def items(self) -> list[ContextItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items
