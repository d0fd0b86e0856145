"""bankidkit: concurrent order engine for the BankID v5 relying-party API.

Public API::

    from bankidkit import QueueSink, Requirements, SessionEngine, load_settings

    engine = SessionEngine(load_settings("config.yaml"), QueueSink())
    order_id = engine.submit("192.0.2.10", requirements=Requirements(
        personal_number="199001011234",
    ))
"""

__version__ = "0.1.0"

from bankidkit.config import BankIDConfig, ConfigValidationError, load_settings
from bankidkit.core.models import Requirements
from bankidkit.core.types import EventKind
from bankidkit.engine import CallbackSink, OrderEvent, QueueSink, ResponseSink, SessionEngine

__all__ = [
    "BankIDConfig",
    "CallbackSink",
    "ConfigValidationError",
    "EventKind",
    "OrderEvent",
    "QueueSink",
    "Requirements",
    "ResponseSink",
    "SessionEngine",
    "__version__",
    "load_settings",
]
