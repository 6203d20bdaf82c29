"""Eviction engine — frees token space by dropping or demoting items.

Policy, applied in a fixed order:

1. Walk the evictable priority tiers from least to most important
   (``low`` -> ``medium`` -> optionally ``high``). ``critical`` is never
   evicted.
2. Inside a tier, take items oldest first regardless of category.
3. Stop as soon as the freed total reaches the requested amount. Items are
   evicted whole; there is no partial eviction.
4. Evicted items of ``medium`` priority or better are marked for the archive,
   ``low`` items are discarded.

Feasibility is decided before anything is touched: ``plan`` returns None when
the evictable tiers cannot free enough, and the registry is left as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .item import ContextItem, ContextPriority
from .registry import ContextRegistry

logger = logging.getLogger(__name__)

# Least important first.
DEFAULT_TIERS: tuple[ContextPriority, ...] = (ContextPriority.LOW, ContextPriority.MEDIUM)
ALL_EVICTABLE_TIERS: tuple[ContextPriority, ...] = (
    ContextPriority.LOW,
    ContextPriority.MEDIUM,
    ContextPriority.HIGH,
)


@dataclass(frozen=True)
class Eviction:
    """One evicted item and whether it goes to the archive."""

    item: ContextItem
    archive: bool


@dataclass
class EvictionPlan:
    """Items selected to free at least ``need`` tokens, in eviction order."""

    need: int
    selected: list[ContextItem] = field(default_factory=list)

    @property
    def freed(self) -> int:
        return sum(item.token_count for item in self.selected)


@dataclass
class EvictionResult:
    freed: int
    evictions: list[Eviction] = field(default_factory=list)

    @property
    def evicted_ids(self) -> list[str]:
        return [e.item.item_id for e in self.evictions]

    @property
    def to_archive(self) -> list[ContextItem]:
        return [e.item for e in self.evictions if e.archive]

    @property
    def discarded(self) -> list[ContextItem]:
        return [e.item for e in self.evictions if not e.archive]


class EvictionEngine:
    """Selects and removes items from a ``ContextRegistry``.

    The engine does no budget accounting; the caller releases ``freed``
    tokens from its tracker.
    """

    def __init__(
        self,
        registry: ContextRegistry,
        tiers: tuple[ContextPriority, ...] = DEFAULT_TIERS,
    ) -> None:
        if ContextPriority.CRITICAL in tiers:
            msg = "critical items are never evictable"
            raise ValueError(msg)
        self._registry = registry
        self._tiers = tuple(sorted(tiers, reverse=True))

    @property
    def tiers(self) -> tuple[ContextPriority, ...]:
        return self._tiers

    def evictable_tokens(self) -> int:
        return sum(self._registry.tier_tokens(p) for p in self._tiers)

    def plan(self, need: int) -> EvictionPlan | None:
        """Choose items to free ``need`` tokens, or None if that is impossible."""
        plan = EvictionPlan(need=need)
        if need <= 0:
            return plan
        if self.evictable_tokens() < need:
            return None

        freed = 0
        for tier in self._tiers:
            for item in self._registry.iter_tier(tier):
                plan.selected.append(item)
                freed += item.token_count
                if freed >= need:
                    return plan
        # Only reachable if tier totals drift from the items themselves.
        return None

    def apply(self, plan: EvictionPlan) -> EvictionResult:
        """Remove the planned items from the registry."""
        result = EvictionResult(freed=0)
        for item in plan.selected:
            removed = self._registry.remove(item.item_id)
            if removed is None:
                continue
            result.freed += removed.token_count
            result.evictions.append(Eviction(item=removed, archive=removed.archivable))
            logger.debug(
                "Evicted %s (%s/%s, %d tokens, %s)",
                removed.item_id,
                removed.category,
                removed.priority.label,
                removed.token_count,
                "archive" if removed.archivable else "discard",
            )
        return result

    def free_space(self, need: int) -> EvictionResult | None:
        """Plan and apply in one step. None means nothing was evicted."""
        plan = self.plan(need)
        if plan is None:
            return None
        return self.apply(plan)
