"""Tokenizer abstraction — how many tokens a piece of text costs.

Provides ABC and concrete backends:
- EstimateTokenizer: words * 1.3 heuristic, model-agnostic
- TiktokenTokenizer: OpenAI BPE encodings via tiktoken
- HttpTokenizer: remote ``/tokenize`` endpoint (llama.cpp server style)
"""

from __future__ import annotations

import asyncio
import math
from abc import ABC, abstractmethod
from typing import Any

import requests
import tiktoken

from .errors import TokenizerError

_FALLBACK_ENCODING = "cl100k_base"


def estimate_tokens(text: str) -> int:
    """Estimate token count from text. Rough heuristic: words * 1.3."""
    if not text:
        return 0
    words = len(text.split())
    return math.ceil(words * 1.3)


class Tokenizer(ABC):
    """Counts tokens for a model. Callers treat results as untrusted."""

    @abstractmethod
    async def count(self, text: str, model_id: str) -> int:
        """Return the token cost of *text* for *model_id*.

        Raises:
            TokenizerError: If the cost cannot be computed.
        """

    def name(self) -> str:
        return type(self).__name__


class EstimateTokenizer(Tokenizer):
    """Word-count heuristic. Ignores ``model_id``."""

    async def count(self, text: str, model_id: str) -> int:
        return estimate_tokens(text)


class TiktokenTokenizer(Tokenizer):
    """Exact BPE counts for OpenAI-family models.

    Unknown model ids fall back to ``cl100k_base``. Encodings are cached per
    model id, so the same text may legitimately cost different amounts for
    different models.
    """

    def __init__(self, fallback_encoding: str = _FALLBACK_ENCODING) -> None:
        self._fallback = fallback_encoding
        self._encodings: dict[str, Any] = {}

    def _encoding_for(self, model_id: str) -> Any:
        enc = self._encodings.get(model_id)
        if enc is None:
            try:
                enc = tiktoken.encoding_for_model(model_id)
            except KeyError:
                enc = tiktoken.get_encoding(self._fallback)
            self._encodings[model_id] = enc
        return enc

    async def count(self, text: str, model_id: str) -> int:
        try:
            enc = self._encoding_for(model_id)
            return len(enc.encode(text, disallowed_special=()))
        except Exception as e:
            raise TokenizerError(f"tiktoken failed for model '{model_id}': {e}") from e


class HttpTokenizer(Tokenizer):
    """Counts via a tokenize endpoint that answers ``{"tokens": [...]}``.

    Default target is a local llama.cpp server (http://localhost:8080).
    The blocking request runs in a worker thread.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 10.0,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/tokenize"
        self._timeout = timeout

    def _count_sync(self, text: str, model_id: str) -> int:
        try:
            resp = requests.post(
                self._url,
                json={"content": text, "model": model_id},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            tokens = resp.json()["tokens"]
        except requests.RequestException as e:
            raise TokenizerError(f"tokenize request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise TokenizerError(f"malformed tokenize response: {e}") from e
        if not isinstance(tokens, list):
            raise TokenizerError("malformed tokenize response: 'tokens' is not a list")
        return len(tokens)

    async def count(self, text: str, model_id: str) -> int:
        return await asyncio.to_thread(self._count_sync, text, model_id)
