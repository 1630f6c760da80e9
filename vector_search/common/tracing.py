"""Tracing helpers for the search engine.

Only the OpenTelemetry API is used here: the engine emits spans and the
embedding application decides whether (and where) to export them by
installing an SDK tracer provider. Without one, every span is a no-op.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

TRACER_NAME = "vector_search"


def get_tracer() -> trace.Tracer:
    """Return the engine tracer from the global tracer provider."""
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def trace_span(operation_name: str, enabled: bool = True, **attributes: Any) -> Iterator[trace.Span]:
    """Run a block inside a span, recording success or error.

    Attribute values are stringified, matching how search parameters are
    reported elsewhere. With ``enabled=False`` a non-recording span is
    yielded so callers never branch on tracing.
    """
    if not enabled:
        yield trace.INVALID_SPAN
        return

    with get_tracer().start_as_current_span(
        operation_name, record_exception=True, set_status_on_exception=False
    ) as span:
        for key, value in attributes.items():
            span.set_attribute(key, str(value))
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            raise
        else:
            span.set_status(Status(StatusCode.OK))
