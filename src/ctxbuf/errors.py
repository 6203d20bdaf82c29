"""Error taxonomy and the tagged result returned by ``ContextBuffer.add``."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ErrorKind(StrEnum):
    TOKENIZATION_FAILURE = "tokenization_failure"
    CAPACITY_EXCEEDED = "capacity_exceeded"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ContextBufferError(Exception):
    """Base class for errors surfaced by the context buffer."""

    kind: ErrorKind | None = None


class TokenizationError(ContextBufferError):
    """The tokenizer could not produce a cost for the content."""

    kind = ErrorKind.TOKENIZATION_FAILURE


class CapacityExceededError(ContextBufferError):
    """The item cannot fit, even after evicting everything evictable."""

    kind = ErrorKind.CAPACITY_EXCEEDED


class BudgetError(ValueError):
    """An accounting adjustment would leave the budget out of range."""


class TokenizerError(Exception):
    """Raised by tokenizer backends when counting fails."""


class ArchiveError(Exception):
    """Raised by archive backends when a write fails."""


_EXCEPTIONS: dict[ErrorKind, type[ContextBufferError]] = {
    ErrorKind.TOKENIZATION_FAILURE: TokenizationError,
    ErrorKind.CAPACITY_EXCEEDED: CapacityExceededError,
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddError:
    """Failure variant of an add."""

    kind: ErrorKind
    message: str

    def to_exception(self) -> ContextBufferError:
        return _EXCEPTIONS[self.kind](self.message)


@dataclass(frozen=True)
class AddResult:
    """Outcome of ``ContextBuffer.add``: exactly one of ``item_id``/``error`` is set."""

    item_id: str | None = None
    error: AddError | None = None
    token_count: int = 0
    evicted: list[str] = field(default_factory=list)
    archived: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if (self.item_id is None) == (self.error is None):
            msg = "AddResult needs exactly one of item_id or error"
            raise ValueError(msg)

    @classmethod
    def success(
        cls,
        item_id: str,
        token_count: int,
        evicted: list[str] | None = None,
        archived: list[str] | None = None,
    ) -> AddResult:
        return cls(
            item_id=item_id,
            token_count=token_count,
            evicted=evicted or [],
            archived=archived or [],
        )

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, token_count: int = 0) -> AddResult:
        return cls(error=AddError(kind, message), token_count=token_count)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the new item id or raise the matching ``ContextBufferError``."""
        if self.error is not None:
            raise self.error.to_exception()
        assert self.item_id is not None
        return self.item_id
