"""Context items — the immutable records held by the buffer."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from enum import IntEnum, StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class ContextCategory(StrEnum):
    """What kind of context an item carries. Descriptive only, never ranked."""

    SYSTEM = "system"
    USER = "user"
    CODE = "code"
    MEMORY = "memory"


class ContextPriority(IntEnum):
    """Importance rank. Lower value = more important."""

    CRITICAL = 0
    HIGH = 1
    MEDIUM = 2
    LOW = 3

    @classmethod
    def parse(cls, value: ContextPriority | str | int) -> ContextPriority:
        """Accept an enum member, its name (``"low"``) or its integer rank."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            msg = f"Unknown priority {value!r}"
            raise ValueError(msg)
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                msg = f"Unknown priority '{value}'"
                raise ValueError(msg) from None
        return cls(value)

    @property
    def label(self) -> str:
        return self.name.lower()


def new_item_id() -> str:
    return uuid.uuid4().hex


class ContextItem(BaseModel):
    """A single piece of context, frozen once stored.

    ``token_count`` is computed once by the tokenizer at insertion time and
    ``inserted_at`` is the registry's logical sequence number. Replacing an
    item means removing it and adding a new one.
    """

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(default_factory=new_item_id)
    content: str
    category: ContextCategory
    priority: ContextPriority
    token_count: int = Field(ge=0)
    inserted_at: int = Field(default=0, ge=0)
    metadata: Mapping[str, str] = Field(default_factory=dict)

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: object) -> ContextPriority:
        return ContextPriority.parse(value)  # type: ignore[arg-type]

    @field_validator("metadata", mode="before")
    @classmethod
    def _copy_metadata(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        return value

    @field_validator("metadata")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        # Read-only view over a private copy; callers cannot edit a stored item.
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _dump_metadata(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    @property
    def archivable(self) -> bool:
        """Medium-or-better items are archived on eviction; low ones are dropped."""
        return self.priority <= ContextPriority.MEDIUM

    def eviction_key(self) -> tuple[int, int]:
        """Sort key putting the least important, oldest item first."""
        return (-int(self.priority), self.inserted_at)
