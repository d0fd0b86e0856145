"""Transport to the remote service.

Exports the abstract base class, the raw response type and the
mutual-TLS HTTPS implementation.
"""

from bankidkit.transport.base import OPERATIONS, Transport, TransportResponse
from bankidkit.transport.https import HttpsTransport, build_ssl_context

__all__ = [
    "OPERATIONS",
    "HttpsTransport",
    "Transport",
    "TransportResponse",
    "build_ssl_context",
]
