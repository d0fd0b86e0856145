"""Session engine, the caller-facing entry point.

Validates submissions, spawns one :class:`OrderWorker` per order, routes
cancellations to the right worker and owns the shared transport.

Usage::

    from bankidkit import QueueSink, SessionEngine, load_settings

    sink = QueueSink()
    with SessionEngine(load_settings("config.yaml"), sink) as engine:
        order_id = engine.submit("192.0.2.10")
        ...
        engine.cancel(order_id)

Orders have no overall deadline: an order stays pending until the
service resolves it or the caller cancels it.  Callers that abandon
orders without cancelling them keep a worker thread alive per order.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import TYPE_CHECKING, Any

from bankidkit.core.errors import NotFoundError, ValidationError
from bankidkit.core.models import OrderRequest
from bankidkit.core.validation import validate_parameters
from bankidkit.engine.registry import OrderRegistry
from bankidkit.engine.sinks import CallbackSink, OrderEvent, ResponseSink
from bankidkit.engine.worker import OrderWorker

if TYPE_CHECKING:
    from collections.abc import Callable

    from bankidkit.config.settings import BankIDSettings
    from bankidkit.core.models import Requirements
    from bankidkit.transport.base import Transport

log = logging.getLogger(__name__)

NOT_FOUND_MSG = "no session with provided ID"
DUPLICATE_ID_MSG = "order id already in use"


class SessionEngine:
    """Runs any number of concurrent orders over one shared transport.

    Parameters
    ----------
    settings:
        Complete settings tree.
    sink:
        A :class:`ResponseSink`, or a plain ``fn(order_id, kind, detail)``
        callable which is wrapped in a :class:`CallbackSink`.
    transport:
        Transport to use.  When omitted an :class:`HttpsTransport` is
        built from ``settings``; construction errors surface here.

    """

    def __init__(
        self,
        settings: BankIDSettings,
        sink: ResponseSink | Callable[[str, str, str], None],
        *,
        transport: Transport | None = None,
    ) -> None:
        if not isinstance(sink, ResponseSink):
            if not callable(sink):
                msg = "sink must be a ResponseSink or a callable"
                raise TypeError(msg)
            sink = CallbackSink(sink)
        if transport is None:
            from bankidkit.transport.https import HttpsTransport

            transport = HttpsTransport(settings.service, settings.cert_store)

        self._settings = settings
        self._sink = sink
        self._transport = transport
        self._registry = OrderRegistry()
        self._workers: dict[str, OrderWorker] = {}
        self._lock = threading.Lock()
        self._shutdown_event = threading.Event()

    # -- inspection --------------------------------------------------------

    @property
    def active_orders(self) -> list[str]:
        """Ids of orders that have started and not yet ended."""
        return self._registry.order_ids()

    @property
    def live_workers(self) -> int:
        """Number of orders submitted and not yet released."""
        with self._lock:
            return len(self._workers)

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_event.is_set()

    @property
    def registry(self) -> OrderRegistry:
        return self._registry

    # -- operations --------------------------------------------------------

    def submit(  # noqa: PLR0913
        self,
        end_user_ip: str,
        order_id: str | None = None,
        text_to_sign: str | None = None,
        requirements: Requirements | None = None,
        on_pairing_code: Callable[[Any, str], None] | None = None,
    ) -> str:
        """Start an order and return its id immediately.

        The outcome, including a validation failure, is delivered only
        through the sink.

        Raises
        ------
        RuntimeError
            If the engine has been shut down.

        """
        if self._shutdown_event.is_set():
            msg = "SessionEngine has been shut down"
            raise RuntimeError(msg)

        if not order_id:
            order_id = uuid.uuid4().hex
            log.debug("Generated order id %s", order_id)

        error = validate_parameters(end_user_ip, text_to_sign, requirements)
        if error is not None:
            self._reject(order_id, error)
            return order_id

        worker = OrderWorker(
            order_id,
            OrderRequest(
                end_user_ip=end_user_ip,
                user_visible_data=text_to_sign or "",
                requirements=requirements,
            ),
            transport=self._transport,
            registry=self._registry,
            sink=self._sink,
            poll_interval=self._settings.service.poll_interval,
            engine_settings=self._settings.engine,
            on_pairing_code=on_pairing_code,
            on_release=self._on_worker_release,
        )

        with self._lock:
            if self._shutdown_event.is_set():
                msg = "SessionEngine has been shut down"
                raise RuntimeError(msg)
            duplicate = order_id in self._workers
            if not duplicate:
                # Only started workers are visible to shutdown.
                self._workers[order_id] = worker
                worker.start()

        if duplicate:
            self._reject(order_id, DUPLICATE_ID_MSG)
            return order_id

        log.info("Submitted %s order %s", worker.request.kind, order_id)
        return order_id

    def cancel(self, order_id: str) -> None:
        """Ask the worker of *order_id* to cancel its order.

        Unknown ids, ids whose order already ended, and orders whose
        ``start`` has not completed yet are reported to the sink as
        "not found"; nothing is raised.
        """
        entry = self._registry.take(order_id)
        if entry is None:
            log.warning("Could not cancel order %s - not found", order_id)
            kind, detail = NotFoundError(NOT_FOUND_MSG).event()
            self._sink.emit(OrderEvent(order_id, kind, detail))
            return
        log.debug("Cancel requested for order %s", order_id)
        entry.cancel_signal.set()

    def shutdown(self, wait: float | None = None) -> None:
        """Cancel every outstanding order and release the transport.

        Parameters
        ----------
        wait:
            Seconds to wait for workers to finish before the transport
            is closed.  Defaults to ``engine.shutdown_grace_seconds``;
            ``0`` returns immediately, and workers still running then
            end with an internal error once the transport is closed.

        """
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()

        with self._lock:
            workers = list(self._workers.values())
        for _order_id, entry in self._registry.drain():
            entry.cancel_signal.set()
        # Workers still in ``start`` are signalled too; they cancel as
        # soon as the order exists.
        for worker in workers:
            worker.cancel_signal.set()

        grace = self._settings.engine.shutdown_grace_seconds if wait is None else wait
        if grace > 0 and workers:
            deadline = time.monotonic() + grace
            for worker in workers:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                worker.join(timeout=remaining)
            still_running = sum(1 for w in workers if w.is_alive())
            if still_running:
                log.warning(
                    "Shutdown grace period expired with %d order(s) still running",
                    still_running,
                )

        self._transport.close()
        log.info("Session engine shut down (%d order(s) signalled)", len(workers))

    # -- internals ---------------------------------------------------------

    def _reject(self, order_id: str, message: str) -> None:
        log.warning("Rejected order %s: %s", order_id, message)
        kind, detail = ValidationError(message).event()
        self._sink.emit(OrderEvent(order_id, kind, detail, terminal=True))

    def _on_worker_release(self, worker: OrderWorker) -> None:
        with self._lock:
            if self._workers.get(worker.order_id) is worker:
                del self._workers[worker.order_id]

    def __enter__(self) -> SessionEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
