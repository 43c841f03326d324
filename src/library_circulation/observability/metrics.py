"""Circulation metrics."""

import logfire

circulation_transitions = logfire.metric_counter(
    "library.circulation.transitions",
    description="Circulation operations by operation and outcome",
)

notifications_enqueued = logfire.metric_counter(
    "library.notifications.enqueued", description="Notifications handed to the gateway"
)


def record_transition(operation: str, outcome: str):
    """Record one circulation operation; outcome is "ok" or an error class name."""
    circulation_transitions.add(1, {"operation": operation, "outcome": outcome})


def record_notification(kind: str):
    notifications_enqueued.add(1, {"kind": kind})
