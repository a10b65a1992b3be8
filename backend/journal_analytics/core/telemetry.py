"""OpenTelemetry wiring for the analytics service.

``setup_telemetry`` installs OTLP providers and instruments the web app, the
ledger HTTP client and the SQL engine. Services never talk to the SDK
directly: they take a tracer or meter from ``get_tracer``/``get_meter``,
which resolve to no-op implementations until telemetry is switched on.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI
from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.system_metrics import SystemMetricsInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes
from sqlalchemy.ext.asyncio import AsyncEngine

from journal_analytics.config import AnalyticsSettings

logger = logging.getLogger(__name__)

INSTRUMENTATION_SCOPE = "journal_analytics"

_TELEMETRY_INITIALISED = False
_METRIC_EXPORT_INTERVAL_MS = 10000


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(INSTRUMENTATION_SCOPE)


def get_meter() -> metrics.Meter:
    return metrics.get_meter(INSTRUMENTATION_SCOPE)


def setup_telemetry(app: FastAPI, settings: AnalyticsSettings, engine: AsyncEngine | None = None) -> None:
    """Install OTLP providers once per process and instrument ``app``.

    The SQL engine is only instrumented when the SQL ledger backend is in
    use; the HTTP ledger client is always instrumented so trace context
    follows fetches into the ledger service.
    """

    global _TELEMETRY_INITIALISED  # noqa: PLW0603 - single initialisation guard

    if _TELEMETRY_INITIALISED:
        return
    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return

    resource = Resource.create(
        {
            ResourceAttributes.SERVICE_NAME: settings.telemetry_service_name or settings.app_name,
            ResourceAttributes.SERVICE_NAMESPACE: "trading-journal",
        }
    )
    exporter_options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        exporter_options["endpoint"] = settings.telemetry_otlp_endpoint

    tracer_provider, meter_provider = _install_providers(resource, settings, exporter_options)
    _instrument(app, engine, tracer_provider, meter_provider)

    _TELEMETRY_INITIALISED = True
    logger.info("Telemetry initialised for %s", settings.telemetry_service_name)


def _install_providers(
    resource: Resource,
    settings: AnalyticsSettings,
    exporter_options: dict[str, Any],
) -> tuple[TracerProvider, MeterProvider]:
    tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio)),
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options)))
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(**exporter_options),
        export_interval_millis=_METRIC_EXPORT_INTERVAL_MS,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(**exporter_options)))
    set_logger_provider(logger_provider)
    LoggingInstrumentor().instrument(set_logging_format=False)
    return tracer_provider, meter_provider


def _instrument(
    app: FastAPI,
    engine: AsyncEngine | None,
    tracer_provider: TracerProvider,
    meter_provider: MeterProvider,
) -> None:
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        excluded_urls="health",
    )
    HTTPXClientInstrumentor().instrument(tracer_provider=tracer_provider)
    SystemMetricsInstrumentor().instrument(meter_provider=meter_provider)
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine, tracer_provider=tracer_provider)


__all__ = ["INSTRUMENTATION_SCOPE", "get_meter", "get_tracer", "setup_telemetry"]
