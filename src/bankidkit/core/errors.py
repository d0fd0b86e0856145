"""Error taxonomy for the session engine.

Every failure an order can run into is raised as a :class:`BankIDError`
subclass inside the worker and converted to exactly one terminal event
via :meth:`BankIDError.event`.  Nothing here ever propagates out of a
worker thread.

Usage::

    try:
        response = transport.send("collect", {"orderRef": ref})
    except TransportError as exc:
        sink.on_event(order_id, *exc.event())
"""

from __future__ import annotations

from bankidkit.core.types import EventKind


class BankIDError(Exception):
    """Base class for every engine-level failure.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient.  The engine never retries on
        its own; the flag is informational for callers.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)

    def event(self) -> tuple[str, str]:
        """Return the ``(kind, detail)`` pair reported to the sink."""
        return EventKind.ERROR.value, self.detail


class ValidationError(BankIDError):
    """Caller input is malformed; detected before any remote call."""


class TransportError(BankIDError):
    """The service could not be reached (network or TLS failure)."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, retryable=True)


class RemoteError(BankIDError):
    """The service answered with a non-2xx status and an error envelope.

    The service's ``errorCode`` becomes the event kind so callers can
    tell e.g. ``alreadyInProgress`` or ``maintenance`` apart from
    internal failures.
    """

    def __init__(self, error_code: str, detail: str, *, status: int) -> None:
        self.error_code = error_code
        self.status = status
        super().__init__(detail, retryable=status >= 500)

    def event(self) -> tuple[str, str]:
        return self.error_code, self.detail


class ProtocolError(BankIDError):
    """The service returned a body the engine cannot interpret."""


class NotFoundError(BankIDError):
    """A cancel referenced an order that is unknown or already finished."""


class PairingCodeError(BankIDError):
    """Deriving or encoding a pairing code failed."""
