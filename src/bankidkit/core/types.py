"""Enumerated types shared by the engine, the wire models and callers.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is the
plain string carried on the wire or handed to the response sink.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Remote order status (collect response)
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    FAILED = "failed"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Order kind, selects the ``start`` operation
# ---------------------------------------------------------------------------


class OrderKind(StrEnum):
    AUTH = "auth"
    SIGN = "sign"


# ---------------------------------------------------------------------------
# Events delivered to the response sink
# ---------------------------------------------------------------------------


class EventKind(StrEnum):
    """Event kinds emitted by an order worker.

    While an order is pending the worker also emits the raw hint code
    (e.g. ``"outstandingTransaction"``) as the kind, and a remote error
    is passed through with the service's own error code; those are not
    members of this enum.
    """

    SENT = "sent"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Worker state machine
# ---------------------------------------------------------------------------


class WorkerState(StrEnum):
    SUBMITTING = "submitting"
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"


TERMINAL_STATES: frozenset[WorkerState] = frozenset(
    {
        WorkerState.COMPLETE,
        WorkerState.FAILED,
        WorkerState.CANCELLED,
        WorkerState.INTERNAL_ERROR,
    }
)
