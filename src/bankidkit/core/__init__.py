"""Domain types, errors, wire models and validation."""

from bankidkit.core.errors import (
    BankIDError,
    NotFoundError,
    PairingCodeError,
    ProtocolError,
    RemoteError,
    TransportError,
    ValidationError,
)
from bankidkit.core.models import OrderRequest, Requirements
from bankidkit.core.types import EventKind, OrderKind, OrderStatus, WorkerState

__all__ = [
    "BankIDError",
    "EventKind",
    "NotFoundError",
    "OrderKind",
    "OrderRequest",
    "OrderStatus",
    "PairingCodeError",
    "ProtocolError",
    "RemoteError",
    "Requirements",
    "TransportError",
    "ValidationError",
    "WorkerState",
]
