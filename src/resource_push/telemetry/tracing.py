"""OpenTelemetry tracing for uploads and digest resolution.

Trace Spans:
    - resource_push.upload: Whole resumable upload of a file resource
    - resource_push.resolve_digest: Registry digest resolution
    - resource_push.registry_auth: Registry challenge and token exchange

Only the OpenTelemetry API is used; without an SDK configured the spans
are no-ops.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

TRACER_NAME = "resource_push"

SPAN_UPLOAD = "resource_push.upload"
SPAN_RESOLVE_DIGEST = "resource_push.resolve_digest"
SPAN_REGISTRY_AUTH = "resource_push.registry_auth"


def get_tracer() -> Tracer:
    """Return the resource-push tracer from the global provider."""
    return trace.get_tracer(TRACER_NAME)


__all__ = [
    "SPAN_REGISTRY_AUTH",
    "SPAN_RESOLVE_DIGEST",
    "SPAN_UPLOAD",
    "TRACER_NAME",
    "get_tracer",
]
