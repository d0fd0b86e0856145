"""Order lifecycle engine.

Public API::

    from bankidkit.engine import QueueSink, SessionEngine

    engine = SessionEngine(settings, QueueSink())
"""

from bankidkit.engine.registry import OrderRegistry, RegistryEntry
from bankidkit.engine.session import SessionEngine
from bankidkit.engine.sinks import CallbackSink, OrderEvent, QueueSink, ResponseSink
from bankidkit.engine.worker import OrderWorker

__all__ = [
    "CallbackSink",
    "OrderEvent",
    "OrderRegistry",
    "OrderWorker",
    "QueueSink",
    "RegistryEntry",
    "ResponseSink",
    "SessionEngine",
]
