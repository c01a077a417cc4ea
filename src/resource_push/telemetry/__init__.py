"""Logging and tracing for resource-push."""

from __future__ import annotations

from resource_push.telemetry.logging import LOG_LEVELS, add_trace_context, configure_logging
from resource_push.telemetry.tracing import (
    SPAN_REGISTRY_AUTH,
    SPAN_RESOLVE_DIGEST,
    SPAN_UPLOAD,
    get_tracer,
)

__all__ = [
    "LOG_LEVELS",
    "SPAN_REGISTRY_AUTH",
    "SPAN_RESOLVE_DIGEST",
    "SPAN_UPLOAD",
    "add_trace_context",
    "configure_logging",
    "get_tracer",
]
