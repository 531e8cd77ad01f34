"""Optional OpenTelemetry tracing for debate sessions.

Tracing is enabled only when OTEL_EXPORTER_OTLP_ENDPOINT is configured;
otherwise every span is a no-op.
"""

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "roundtable")

_tracer = None
_telemetry_enabled = False


def is_telemetry_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _telemetry_enabled


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry tracing with an OTLP exporter.

    Returns:
        True if telemetry was configured, False otherwise.
    """
    global _tracer, _telemetry_enabled

    if not OTEL_EXPORTER_OTLP_ENDPOINT:
        logger.info("OpenTelemetry disabled: OTEL_EXPORTER_OTLP_ENDPOINT not configured")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as e:
        logger.warning("OpenTelemetry packages not available: %s", e)
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": OTEL_SERVICE_NAME}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT)))
    trace.set_tracer_provider(provider)

    _tracer = trace.get_tracer("roundtable")
    _telemetry_enabled = True
    logger.info(
        "OpenTelemetry initialized. Endpoint: %s, Service: %s",
        OTEL_EXPORTER_OTLP_ENDPOINT, OTEL_SERVICE_NAME,
    )
    return True


def get_tracer() -> Any:
    """Get the configured tracer, or a no-op tracer when tracing is disabled."""
    if _tracer is not None:
        return _tracer
    return _NoOpTracer()


def record_span_error(span: Any, error: BaseException) -> None:
    """Mark a span as failed with the given error."""
    if not _telemetry_enabled:
        return
    from opentelemetry.trace import Status, StatusCode

    span.record_exception(error)
    span.set_status(Status(StatusCode.ERROR, str(error)))


def instrument_app(app: Any) -> None:
    """Instrument the FastAPI app and httpx clients when tracing is enabled."""
    if not _telemetry_enabled:
        logger.debug("Skipping instrumentation: telemetry disabled")
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
    except ImportError:
        logger.warning("OpenTelemetry instrumentation packages not available")
        return

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    logger.info("FastAPI and httpx instrumentation enabled")


class _NoOpSpan:
    """Span stand-in used when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:
    """Tracer stand-in used when tracing is disabled."""

    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:
        return _NoOpSpan()
