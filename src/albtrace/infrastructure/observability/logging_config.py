from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from albtrace.api.middleware.amazon_trace import get_propagation_context

_LOGGING_CONFIGURED = False

# Extras attached by albtrace.application.propagation.hooks.
_PROPAGATION_EXTRA_KEYS = ("header", "error")


def _trace_fields() -> dict[str, str | None]:
    prop = get_propagation_context()
    fields: dict[str, str | None] = {
        "trace_id": prop.trace_id if prop else None,
        "parent_id": prop.parent_id if prop else None,
        "grand_parent_id": (prop.grand_parent_id or None) if prop else None,
        "otel_trace_id": None,
        "otel_span_id": None,
    }

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        fields["otel_trace_id"] = format(span_context.trace_id, "032x")
        fields["otel_span_id"] = format(span_context.span_id, "016x")
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the inbound X-Amzn-Trace-Id lineage."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_trace_fields())
        payload.update(
            {
                key: getattr(record, key)
                for key in _PROPAGATION_EXTRA_KEYS
                if getattr(record, key, None) is not None
            }
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging() -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    _LOGGING_CONFIGURED = True
