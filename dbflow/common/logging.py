"""Structured JSON logging with service and trace context fields."""

import logging
import sys

from opentelemetry import trace
from pythonjsonlogger.json import JsonFormatter


class ContextFilter(logging.Filter):
    """Inject the service name and the active span identifiers into every record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        record.service_name = self.service_name
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def configure_logging(service_name: str = "dbflow", level: str = "INFO") -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter(service_name)
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(span_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    root.addFilter(context_filter)


logger = logging.getLogger("dbflow")
