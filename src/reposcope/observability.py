"""RepoScope Observability: OpenTelemetry tracing and metrics.

Opt-in via OTEL_EXPORTER_OTLP_ENDPOINT env var (requires the
``otel`` extra). Without it, the OpenTelemetry API hands out no-op
tracers and meters.
"""

from __future__ import annotations

import os

from opentelemetry import metrics, trace

from reposcope import __version__
from reposcope.logging import get_logger

logger = get_logger("reposcope.observability")

_initialized = False
_instruments: dict | None = None


def init_tracing(
    endpoint: str | None = None,
    service_name: str | None = None,
) -> bool:
    """Install an OTLP span exporter.

    Args:
        endpoint: OTLP endpoint URL. Falls back to OTEL_EXPORTER_OTLP_ENDPOINT env var.
        service_name: Service name for traces. Falls back to OTEL_SERVICE_NAME env var.

    Returns:
        True if tracing was initialized, False if skipped (no endpoint).
    """
    global _initialized

    if _initialized:
        return True

    endpoint = endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return False

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    service_name = service_name or os.environ.get("OTEL_SERVICE_NAME", "reposcope")
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)

    _initialized = True
    logger.info("Tracing initialized", extra={"path": endpoint})
    return True


def get_tracer() -> trace.Tracer:
    return trace.get_tracer("reposcope", __version__)


def _get_instruments() -> dict:
    global _instruments
    if _instruments is None:
        meter = metrics.get_meter("reposcope", __version__)
        _instruments = {
            "tool_calls": meter.create_counter(
                "reposcope.tool_calls.total",
                description="Total tool call executions",
                unit="1",
            ),
            "tool_duration": meter.create_histogram(
                "reposcope.tool_call.duration_ms",
                description="Tool call duration in milliseconds",
                unit="ms",
            ),
            "model_calls": meter.create_counter(
                "reposcope.model_calls.total",
                description="Total model invocations",
                unit="1",
            ),
        }
    return _instruments


def record_tool_call(tool_name: str, status: str, duration_ms: float) -> None:
    """Record one terminal tool call."""
    instruments = _get_instruments()
    attributes = {"tool.name": tool_name, "tool.status": status}
    instruments["tool_calls"].add(1, attributes)
    instruments["tool_duration"].record(duration_ms, attributes)


def record_model_call(provider: str, tools_attached: bool) -> None:
    _get_instruments()["model_calls"].add(
        1, {"provider": provider, "tools_attached": tools_attached}
    )
