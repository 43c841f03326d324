"""Context managers for tracing circulation operations."""

from contextlib import contextmanager

import logfire

from .metrics import record_transition


@contextmanager
def trace_circulation(operation: str, asset_id: int, **attributes):
    """Span around one engine operation; also counts its outcome."""
    with logfire.span(
        f"circulation.{operation}",
        circulation_operation=operation,
        asset_id=asset_id,
        **attributes,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("circulation.error", type(e).__name__)
            record_transition(operation, type(e).__name__)
            raise
        record_transition(operation, "ok")
