"""Tests for telemetry module — OpenTelemetry tracing integration."""

from __future__ import annotations

import pytest

from ctxbuf.buffer import ContextBuffer
from ctxbuf.config import BufferConfig
from ctxbuf.telemetry import BufferTracer, TelemetryConfig


def test_init_with_none_config_succeeds() -> None:
    tracer = BufferTracer(TelemetryConfig(exporter="none"))
    tracer.init()
    tracer.shutdown()


def test_span_context_manager_works() -> None:
    tracer = BufferTracer(TelemetryConfig(exporter="none"))
    tracer.init()
    with tracer.span("buffer/add", {"ctxbuf.category": "code"}) as s:
        assert s is not None
    tracer.shutdown()


def test_record_event_does_not_error() -> None:
    tracer = BufferTracer()
    tracer.record_event("buffer/evict", {"ctxbuf.freed": 10})


def test_stdout_exporter_spans_and_double_shutdown() -> None:
    tracer = BufferTracer(TelemetryConfig(exporter="stdout"))
    tracer.init()
    with tracer.span("buffer/add") as s:
        assert s.is_recording()
    tracer.shutdown()
    tracer.shutdown()


def test_config_defaults_are_correct() -> None:
    cfg = TelemetryConfig()
    assert cfg.service_name == "ctxbuf"
    assert cfg.enabled is True
    assert cfg.exporter == "none"


@pytest.mark.asyncio
async def test_buffer_runs_with_recording_tracer() -> None:
    tracer = BufferTracer(TelemetryConfig(exporter="stdout"))
    tracer.init()
    buf = ContextBuffer(BufferConfig(max_tokens=20, buffer_ratio=0.0), tracer=tracer)
    await buf.add("one two three", "user", "low")
    result = await buf.add(" ".join(["w"] * 14), "user", "high")
    assert result.ok
    assert buf.stats.evictions == 1
    tracer.shutdown()


def test_unknown_exporter_rejected() -> None:
    tracer = BufferTracer(TelemetryConfig(exporter="jaeger"))
    with pytest.raises(ValueError, match="Unknown exporter"):
        tracer.init()


def test_disabled_tracer_ignores_exporter() -> None:
    tracer = BufferTracer(TelemetryConfig(enabled=False, exporter="stdout"))
    tracer.init()
    with tracer.span("buffer/add") as s:
        assert not s.is_recording()
