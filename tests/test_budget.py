"""Tests for the budget tracker."""

import pytest

from ctxbuf.budget import BudgetTracker, reserve_tokens
from ctxbuf.errors import BudgetError


def test_budget_tracking():
    budget = BudgetTracker(max_tokens=100, buffer_ratio=0.2)
    assert budget.reserve == 20
    assert budget.usable_tokens == 80
    assert budget.remaining_capacity() == 80

    budget.commit(50)
    assert budget.current == 50
    assert budget.remaining_capacity() == 30
    assert budget.has_space(30)
    assert not budget.has_space(31)

    budget.release(20)
    assert budget.current == 30
    assert budget.utilization() == pytest.approx(0.3)


def test_budget_requires_positive_max():
    with pytest.raises(ValueError, match="max_tokens must be positive"):
        BudgetTracker(max_tokens=0)

    with pytest.raises(ValueError, match="buffer_ratio"):
        BudgetTracker(max_tokens=100, buffer_ratio=1.0)


def test_commit_past_max_fails_without_clamping():
    budget = BudgetTracker(max_tokens=100, buffer_ratio=0.2)
    budget.commit(90)  # into the reserve is still accounting-legal
    with pytest.raises(BudgetError):
        budget.commit(11)
    assert budget.current == 90


def test_release_below_zero_fails():
    budget = BudgetTracker(max_tokens=100)
    budget.commit(10)
    with pytest.raises(BudgetError):
        budget.release(11)
    with pytest.raises(BudgetError):
        budget.release(-1)
    with pytest.raises(BudgetError):
        budget.commit(-1)
    assert budget.current == 10


def test_reserve_rounding():
    assert reserve_tokens(4096, 0.2) == 819
    assert reserve_tokens(10, 0.25) == 3  # 2.5 rounds half-up
    assert reserve_tokens(100, 0.0) == 0


def test_reset_zeroes_current():
    budget = BudgetTracker(max_tokens=100)
    budget.commit(42)
    budget.reset()
    assert budget.current == 0
    assert budget.remaining_capacity() == budget.usable_tokens
