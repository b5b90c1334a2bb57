"""Logging and OpenTelemetry configuration."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

# Not traced
EXCLUDED_URLS = "/health"


def get_service_resource() -> Resource:
    """Describe this deployment for exported spans and metrics."""
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "pickup-ordering-service"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def build_providers(resource: Resource, export: bool) -> tuple[TracerProvider, MeterProvider]:
    """Create tracer and meter providers, optionally shipping data over OTLP HTTP.

    The collector base URL comes from OTEL_EXPORTER_OTLP_ENDPOINT; the signal
    paths are appended here.
    """
    tracer_provider = TracerProvider(resource=resource)
    if not export:
        return tracer_provider, MeterProvider(resource=resource)

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")))
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")),
    )
    logger.info("Exporting telemetry over OTLP", extra={"endpoint": endpoint})
    return tracer_provider, MeterProvider(resource=resource, metric_readers=[reader])


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Install global providers and instrument backend calls and the API.

    Exporters stay off under ENVIRONMENT=test whatever the caller asks for.
    Backend requests are traced through the httpx instrumentation so every
    table or auth call shows up as a child span of the API request.
    """
    export = enable_exporters and os.getenv("ENVIRONMENT", "development") != "test"
    tracer_provider, meter_provider = build_providers(get_service_resource(), export)
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)

    HTTPXClientInstrumentor().instrument()
    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=EXCLUDED_URLS)

    logger.info("Observability configured", extra={"exporters": export, "app_instrumented": app is not None})


class TraceContextFilter(logging.Filter):
    """Stamp each record with the active trace and span ids.

    Records emitted outside a span get empty strings so the JSON formatter
    always writes both keys.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def configure_logging(log_level: str = "INFO") -> None:
    """Send JSON log lines to stderr, correlated with the current trace.

    LOG_LEVEL in the environment wins over the argument. Unknown level names
    fall back to INFO. Existing root handlers are replaced so repeated calls
    (one per cold start) never duplicate output.
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level_name, level = "INFO", logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(trace_id)s %(span_id)s %(message)s",
            rename_fields={"levelname": "level"},
            timestamp=True,
        )
    )
    handler.addFilter(TraceContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # uvicorn installs its own handlers; route its output through ours
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    logger.info("JSON logging configured", extra={"log_level": level_name})
