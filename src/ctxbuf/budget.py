"""Budget tracker — token accounting with a reserved safety buffer."""

from __future__ import annotations

import math

from .errors import BudgetError


def reserve_tokens(max_tokens: int, buffer_ratio: float) -> int:
    """Tokens held back from use: ``max_tokens * buffer_ratio`` rounded half-up."""
    return math.floor(max_tokens * buffer_ratio + 0.5)


class BudgetTracker:
    """Tracks committed tokens against ``max_tokens`` minus the reserve.

    Pure accounting, no knowledge of items. ``commit`` and ``release`` raise
    ``BudgetError`` instead of clamping.
    """

    def __init__(self, max_tokens: int, buffer_ratio: float = 0.2) -> None:
        if max_tokens <= 0:
            msg = "max_tokens must be positive"
            raise ValueError(msg)
        if not 0 <= buffer_ratio < 1:
            msg = "buffer_ratio must be in [0, 1)"
            raise ValueError(msg)
        self._max = max_tokens
        self._reserve = reserve_tokens(max_tokens, buffer_ratio)
        self._current = 0

    def has_space(self, tokens: int) -> bool:
        return self._current + tokens <= self.usable_tokens

    def remaining_capacity(self) -> int:
        return max(0, self.usable_tokens - self._current)

    def commit(self, tokens: int) -> None:
        if tokens < 0:
            msg = f"cannot commit a negative amount ({tokens})"
            raise BudgetError(msg)
        if self._current + tokens > self._max:
            msg = f"commit of {tokens} would exceed max_tokens ({self._current}/{self._max})"
            raise BudgetError(msg)
        self._current += tokens

    def release(self, tokens: int) -> None:
        if tokens < 0:
            msg = f"cannot release a negative amount ({tokens})"
            raise BudgetError(msg)
        if tokens > self._current:
            msg = f"release of {tokens} would drop below zero (current {self._current})"
            raise BudgetError(msg)
        self._current -= tokens

    def reset(self) -> None:
        self._current = 0

    def utilization(self) -> float:
        return self._current / self._max

    @property
    def max_tokens(self) -> int:
        return self._max

    @property
    def reserve(self) -> int:
        return self._reserve

    @property
    def usable_tokens(self) -> int:
        return self._max - self._reserve

    @property
    def current(self) -> int:
        return self._current
