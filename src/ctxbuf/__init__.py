"""ctxbuf — bounded context buffer with priority eviction and archival."""

from __future__ import annotations

__version__ = "0.1.0"

from .archive import Archive, InMemoryArchive, SqliteArchive
from .budget import BudgetTracker, reserve_tokens
from .buffer import BufferSnapshot, ContextBuffer, ItemView
from .config import BufferConfig
from .errors import (
    AddError,
    AddResult,
    ArchiveError,
    BudgetError,
    CapacityExceededError,
    ContextBufferError,
    ErrorKind,
    TokenizationError,
    TokenizerError,
)
from .eviction import Eviction, EvictionEngine, EvictionPlan, EvictionResult
from .item import ContextCategory, ContextItem, ContextPriority
from .registry import ContextRegistry
from .stats import BufferStats
from .telemetry import BufferTracer, TelemetryConfig
from .tokenizer import (
    EstimateTokenizer,
    HttpTokenizer,
    TiktokenTokenizer,
    Tokenizer,
    estimate_tokens,
)

__all__ = [
    "AddError",
    "AddResult",
    "Archive",
    "ArchiveError",
    "BudgetError",
    "BudgetTracker",
    "BufferConfig",
    "BufferSnapshot",
    "BufferStats",
    "BufferTracer",
    "CapacityExceededError",
    "ContextBuffer",
    "ContextBufferError",
    "ContextCategory",
    "ContextItem",
    "ContextPriority",
    "ContextRegistry",
    "ErrorKind",
    "EstimateTokenizer",
    "Eviction",
    "EvictionEngine",
    "EvictionPlan",
    "EvictionResult",
    "HttpTokenizer",
    "InMemoryArchive",
    "ItemView",
    "SqliteArchive",
    "TelemetryConfig",
    "TiktokenTokenizer",
    "Tokenizer",
    "TokenizationError",
    "TokenizerError",
    "estimate_tokens",
    "reserve_tokens",
]
