"""Abstract base class for transports.

A transport issues authenticated POST requests for the three remote
operations and hands back the raw status and body.  It never interprets
the body: error envelopes, JSON decoding and status handling belong to
the order worker.

One transport instance is shared by every order worker, so
implementations must be safe to call from many threads at once.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

START_OPERATIONS = frozenset({"auth", "sign"})
OPERATIONS = START_OPERATIONS | {"collect", "cancel"}


@dataclass(frozen=True)
class TransportResponse:
    """Raw result of one remote call."""

    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300  # noqa: PLR2004


class Transport(abc.ABC):
    """Base class for all transport implementations.

    Subclasses implement :meth:`_send`; :meth:`send` validates the
    operation name first.
    """

    def send(self, operation: str, payload: dict[str, Any]) -> TransportResponse:
        """POST *payload* to *operation* and return the raw response.

        Raises
        ------
        ValueError
            If *operation* is not one of ``auth``, ``sign``, ``collect``
            or ``cancel``.
        TransportError
            If the service cannot be reached.

        """
        if operation not in OPERATIONS:
            msg = f"Unknown operation '{operation}'. Known operations: {sorted(OPERATIONS)}"
            raise ValueError(msg)
        return self._send(operation, payload)

    @abc.abstractmethod
    def _send(self, operation: str, payload: dict[str, Any]) -> TransportResponse:
        """Perform the request; *operation* is already validated."""

    def close(self) -> None:  # noqa: B027
        """Release connections.  Default is a no-op."""

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
