"""OpenTelemetry tracing integration for ctxbuf.

Provides distributed tracing with support for stdout, OTLP, and noop exporters.
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import NoOpTracer, Span, Tracer

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class TelemetryConfig:
    """Configuration for the ctxbuf tracing subsystem."""

    service_name: str = "ctxbuf"
    enabled: bool = True
    exporter: str = "none"  # "stdout" | "otlp" | "none"
    otlp_endpoint: str = "http://localhost:4317"


# ---------------------------------------------------------------------------
# BufferTracer
# ---------------------------------------------------------------------------


class BufferTracer:
    """Wraps OpenTelemetry ``TracerProvider`` setup for a buffer.

    Each ``ContextBuffer`` owns one; the default is a noop tracer until
    ``init()`` is called with an exporter configured.
    """

    def __init__(self, config: TelemetryConfig | None = None) -> None:
        self._config = config or TelemetryConfig()
        self._provider: TracerProvider | None = None
        self._tracer: Tracer = NoOpTracer()

    # -- lifecycle -----------------------------------------------------------

    def init(self) -> None:
        """Install a TracerProvider exporting through the configured exporter.

        Raises:
            ValueError: If ``exporter`` is not "stdout", "otlp" or "none".
            ImportError: If "otlp" is requested without the ``otlp`` extra.
        """
        cfg = self._config
        if not cfg.enabled or cfg.exporter == "none":
            return

        provider = TracerProvider(resource=Resource.create({"service.name": cfg.service_name}))
        provider.add_span_processor(SimpleSpanProcessor(self._make_exporter()))
        self._provider = provider
        self._tracer = provider.get_tracer(cfg.service_name)

    def _make_exporter(self) -> SpanExporter:
        cfg = self._config
        if cfg.exporter == "stdout":
            return ConsoleSpanExporter()
        if cfg.exporter == "otlp":
            try:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                    OTLPSpanExporter,
                )
            except ImportError as e:
                raise ImportError(
                    "OTLP export requires the exporter package. Install with: "
                    "pip install 'ctxbuf[otlp]'"
                ) from e
            return OTLPSpanExporter(endpoint=cfg.otlp_endpoint, insecure=True)
        msg = f"Unknown exporter '{cfg.exporter}'. Valid values: stdout, otlp, none"
        raise ValueError(msg)

    # -- span helpers --------------------------------------------------------

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[Span, None, None]:
        """Create a span as a context manager.

        Usage::

            with tracer.span("buffer/add", {"ctxbuf.category": "code"}) as s:
                ...
        """
        with self._tracer.start_as_current_span(name) as s:
            if attributes:
                for k, v in attributes.items():
                    s.set_attribute(k, v)
            yield s

    def record_event(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Record a named event on the current active span (if any)."""
        current_span = trace.get_current_span()
        if current_span.is_recording():
            current_span.add_event(name, dict(attributes) if attributes else {})

    def shutdown(self) -> None:
        """Flush pending spans and shut down the provider.

        Safe to call multiple times.
        """
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
