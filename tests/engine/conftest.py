"""Engine-specific fixtures for testing."""

from __future__ import annotations

import pytest

from bankidkit.core.models import OrderRequest
from bankidkit.engine.registry import OrderRegistry
from bankidkit.engine.session import SessionEngine
from bankidkit.engine.sinks import QueueSink
from bankidkit.engine.worker import OrderWorker


@pytest.fixture()
def registry() -> OrderRegistry:
    return OrderRegistry()


@pytest.fixture()
def sink() -> QueueSink:
    return QueueSink()


@pytest.fixture()
def make_worker(fake_transport, registry, sink, fast_settings):
    """Factory for workers wired to the shared fake transport."""

    def _make(order_id: str = "o1", request: OrderRequest | None = None, **kwargs):
        kwargs.setdefault("engine_settings", fast_settings.engine)
        kwargs.setdefault("sink", sink)
        kwargs.setdefault("poll_interval", fast_settings.service.poll_interval)
        return OrderWorker(
            order_id,
            request or OrderRequest(end_user_ip="192.0.2.10"),
            transport=fake_transport,
            registry=registry,
            **kwargs,
        )

    return _make


@pytest.fixture()
def engine(fast_settings, sink, fake_transport):
    eng = SessionEngine(fast_settings, sink, transport=fake_transport)
    yield eng
    eng.shutdown(wait=2)
