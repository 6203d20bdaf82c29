"""Tests for AddResult and the error taxonomy."""

import pytest

from ctxbuf.errors import (
    AddResult,
    CapacityExceededError,
    ContextBufferError,
    ErrorKind,
    TokenizationError,
)


def test_success_unwraps_to_id():
    result = AddResult.success("abc", token_count=12, evicted=["old"])
    assert result.ok
    assert result.unwrap() == "abc"
    assert result.evicted == ["old"]
    assert result.archived == []


def test_failure_unwrap_raises_matching_exception():
    capacity = AddResult.failure(ErrorKind.CAPACITY_EXCEEDED, "too big", token_count=900)
    assert not capacity.ok
    with pytest.raises(CapacityExceededError, match="too big"):
        capacity.unwrap()

    tok = AddResult.failure(ErrorKind.TOKENIZATION_FAILURE, "down")
    with pytest.raises(ContextBufferError) as exc_info:
        tok.unwrap()
    assert isinstance(exc_info.value, TokenizationError)
    assert exc_info.value.kind is ErrorKind.TOKENIZATION_FAILURE


def test_result_needs_exactly_one_variant():
    with pytest.raises(ValueError, match="exactly one"):
        AddResult()
