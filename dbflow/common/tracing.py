"""OpenTelemetry setup and the tracer used by the database core."""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from dbflow.common.config import DatabaseSettings


# Proxy tracer: spans reach whichever provider is registered later.
tracer = trace.get_tracer("dbflow.database")


def setup_tracing(settings: DatabaseSettings, endpoint: str | None = None) -> None:
    """Create and register a tracer provider with OTLP HTTP exporter.

    `endpoint` overrides the configured `OTEL_EXPORTER_OTLP_ENDPOINT`.
    """

    resource = Resource.create({"service.name": settings.service_name})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint or settings.otel_exporter_otlp_endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
