"""Buffer configuration — explicit values or ``CTXBUF_*`` environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

from .budget import reserve_tokens as _reserve_tokens

DEFAULT_MAX_TOKENS = 4096
DEFAULT_BUFFER_RATIO = 0.2
DEFAULT_MODEL_ID = "default"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class BufferConfig(BaseModel):
    """Settings for a ``ContextBuffer``.

    ``evict_high_priority`` widens eviction to the ``high`` tier once ``low``
    and ``medium`` are exhausted. Off by default, so only ``low`` and
    ``medium`` items are ever displaced automatically.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    buffer_ratio: float = Field(default=DEFAULT_BUFFER_RATIO, ge=0.0, lt=1.0)
    model_id: str = DEFAULT_MODEL_ID
    tokenizer_timeout: float | None = Field(default=None, gt=0)
    evict_high_priority: bool = False

    @property
    def reserve_tokens(self) -> int:
        return _reserve_tokens(self.max_tokens, self.buffer_ratio)

    @property
    def usable_tokens(self) -> int:
        return self.max_tokens - self.reserve_tokens

    @classmethod
    def from_env(cls, **overrides: object) -> BufferConfig:
        """Build from ``CTXBUF_*`` variables; explicit keyword overrides win.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        values: dict[str, object] = {}
        env = os.environ
        if raw := env.get("CTXBUF_MAX_TOKENS", "").strip():
            values["max_tokens"] = raw
        if raw := env.get("CTXBUF_BUFFER_RATIO", "").strip():
            values["buffer_ratio"] = raw
        if raw := env.get("CTXBUF_MODEL_ID", "").strip():
            values["model_id"] = raw
        if raw := env.get("CTXBUF_TOKENIZER_TIMEOUT_SEC", "").strip():
            values["tokenizer_timeout"] = raw
        if raw := env.get("CTXBUF_EVICT_HIGH", "").strip():
            values["evict_high_priority"] = raw.lower() in _TRUTHY
        values.update(overrides)
        return cls.model_validate(values)
