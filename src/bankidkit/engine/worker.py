"""Order worker: drives one order from ``start`` to a terminal event.

States::

    submitting ──start ok──▶ pending ──collect──▶ complete | failed
        │                      │
        └─start error──▶ internal_error ◀── collect/cancel error,
                               │             unknown status,
                               └─ cancel signal ──▶ cancelled

Each poll iteration first checks the cancel signal without blocking,
then issues one ``collect``, then waits on the cancel signal for the
poll interval.  A cancel raised while the worker waits is therefore
acted on at the start of the next iteration, and there is never more
than one remote call in flight for the order.

Exactly one terminal event is emitted.  Before it is emitted the
pairing-code loop is stopped and the registry entry released, so a
consumer reacting to the terminal event sees no leftover state.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from bankidkit.core.errors import BankIDError, PairingCodeError, ProtocolError
from bankidkit.core.models import (
    CollectResponse,
    ErrorEnvelope,
    StartResponse,
    order_ref_payload,
)
from bankidkit.core.types import EventKind, OrderStatus, WorkerState
from bankidkit.engine.sinks import OrderEvent
from bankidkit.logging.setup import bind_order_id
from bankidkit.pairing.codes import RENDERERS, PairingCodeGenerator
from bankidkit.pairing.loop import PairingCodeLoop

if TYPE_CHECKING:
    from collections.abc import Callable

    from bankidkit.config.settings import EngineSettings
    from bankidkit.core.models import OrderRequest
    from bankidkit.engine.registry import OrderRegistry, RegistryEntry
    from bankidkit.engine.sinks import ResponseSink
    from bankidkit.transport.base import Transport

log = logging.getLogger(__name__)

UNKNOWN_STATUS_MSG = "unknown status in response from server"


class OrderWorker(threading.Thread):
    """State machine for one order, running on its own thread.

    Parameters
    ----------
    order_id:
        Caller-visible identifier.
    request:
        Validated order request.
    transport:
        Shared transport to the service.
    registry:
        Shared registry the worker inserts its own entry into.
    sink:
        Receiver of lifecycle events.
    poll_interval:
        Seconds between ``collect`` calls.
    engine_settings:
        Pairing-code cadence and rendering options.
    on_pairing_code:
        ``fn(code, order_id)``; when given, pairing codes are emitted
        while the order is pending.
    on_release:
        Called once with the worker when it releases its resources,
        just before the terminal event is emitted.

    """

    def __init__(  # noqa: PLR0913
        self,
        order_id: str,
        request: OrderRequest,
        *,
        transport: Transport,
        registry: OrderRegistry,
        sink: ResponseSink,
        poll_interval: float,
        engine_settings: EngineSettings | None = None,
        on_pairing_code: Callable[[Any, str], None] | None = None,
        on_release: Callable[[OrderWorker], None] | None = None,
    ) -> None:
        super().__init__(name=f"bankidkit-order-{order_id}", daemon=True)
        self.order_id = order_id
        self.request = request
        self.cancel_signal = threading.Event()
        self._transport = transport
        self._registry = registry
        self._sink = sink
        self._poll_interval = poll_interval
        self._engine_settings = engine_settings
        self._on_pairing_code = on_pairing_code
        self._on_release = on_release

        self._state = WorkerState.SUBMITTING
        self._order_ref: str | None = None
        self._hint = ""
        self._entry: RegistryEntry | None = None
        self._pairing_loop: PairingCodeLoop | None = None
        self._pairing_error: PairingCodeError | None = None
        self._terminal_event: OrderEvent | None = None
        self._released = False

    # -- inspection --------------------------------------------------------

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def order_ref(self) -> str | None:
        return self._order_ref

    @property
    def hint(self) -> str:
        return self._hint

    @property
    def terminal_event(self) -> OrderEvent | None:
        return self._terminal_event

    @property
    def pairing_loop(self) -> PairingCodeLoop | None:
        return self._pairing_loop

    # -- thread body -------------------------------------------------------

    def run(self) -> None:
        bind_order_id(self.order_id)
        try:
            self._run()
        except Exception as exc:
            log.exception("Order worker crashed")
            if self._terminal_event is None:
                self._finish(WorkerState.INTERNAL_ERROR, EventKind.ERROR, str(exc))
        finally:
            self._release()
            bind_order_id(None)

    def _run(self) -> None:
        log.debug("Starting %s order", self.request.kind)
        try:
            start = StartResponse.from_json(
                self._call(self.request.operation, self.request.to_wire()),
            )
        except BankIDError as exc:
            self._fail(exc, "start")
            return

        self._order_ref = start.order_ref
        self._entry = self._registry.register(
            self.order_id,
            start.order_ref,
            self.cancel_signal,
        )
        self._state = WorkerState.PENDING
        self._emit(EventKind.SENT, start.auto_start_token)
        self._start_pairing(start)
        self._poll()

    def _poll(self) -> None:
        while True:
            if self.cancel_signal.is_set():
                self._on_signal()
                return

            try:
                collect = CollectResponse.from_json(
                    self._call("collect", order_ref_payload(self._order_ref)),  # type: ignore[arg-type]
                )
            except BankIDError as exc:
                self._fail(exc, "collect")
                return

            if collect.status == OrderStatus.PENDING:
                # A missing hintCode keeps the previous one.
                if collect.hint_code and collect.hint_code != self._hint:
                    log.debug("Status changed to %s", collect.hint_code)
                    self._hint = collect.hint_code
                    self._emit(collect.hint_code, OrderStatus.PENDING.value)
                self.cancel_signal.wait(self._poll_interval)
            elif collect.status == OrderStatus.FAILED:
                hint = collect.hint_code or self._hint
                log.info("Order failed: %s", hint)
                self._finish(WorkerState.FAILED, EventKind.FAILED, hint)
                return
            elif collect.status == OrderStatus.COMPLETE:
                completion = collect.completion_data
                name = completion.user.name if completion is not None else ""
                log.info("Order complete")
                self._finish(WorkerState.COMPLETE, EventKind.COMPLETE, name)
                return
            else:
                log.error("Unknown status '%s' in collect response", collect.status)
                self._fail(ProtocolError(UNKNOWN_STATUS_MSG), "collect")
                return

    def _on_signal(self) -> None:
        """Act on a raised cancel signal: pairing failure or cancellation."""
        self._stop_pairing()
        if self._pairing_error is not None:
            # The order cannot proceed as requested; withdraw it.
            try:
                self._call("cancel", order_ref_payload(self._order_ref))  # type: ignore[arg-type]
            except BankIDError as exc:
                log.warning("Could not cancel order after pairing failure: %s", exc.detail)
            self._fail(self._pairing_error, "pairing")
            return

        log.debug("Received cancel command")
        try:
            self._call("cancel", order_ref_payload(self._order_ref))  # type: ignore[arg-type]
        except BankIDError as exc:
            self._fail(exc, "cancel")
            return
        log.info("Order cancelled")
        self._finish(WorkerState.CANCELLED, EventKind.CANCELLED, "")

    # -- remote calls ------------------------------------------------------

    def _call(self, operation: str, payload: dict[str, Any]) -> bytes:
        """Send one request and return the body of a 2xx response.

        Raises
        ------
        TransportError
            The service could not be reached.
        RemoteError
            The service answered with an error envelope.
        ProtocolError
            The error envelope could not be decoded.

        """
        response = self._transport.send(operation, payload)
        if not response.ok:
            raise ErrorEnvelope.from_json(response.body).to_exception(response.status)
        return response.body

    # -- pairing codes -----------------------------------------------------

    def _start_pairing(self, start: StartResponse) -> None:
        if self._on_pairing_code is None:
            return
        if not start.has_pairing_seeds:
            log.warning("Pairing codes requested but the start response has no QR seeds")
            return
        settings = self._engine_settings
        generator = PairingCodeGenerator(
            start.qr_start_token,
            start.qr_start_secret,
            renderer=RENDERERS[settings.pairing_format if settings else "png"],
            scale=settings.pairing_scale if settings else 5,
        )
        self._pairing_loop = PairingCodeLoop(
            generator,
            self.order_id,
            self._on_pairing_code,
            on_error=self._on_pairing_failure,
            interval=settings.pairing_interval_seconds if settings else 1.0,
        )
        self._pairing_loop.start()

    def _on_pairing_failure(self, exc: PairingCodeError) -> None:
        self._pairing_error = exc
        self.cancel_signal.set()

    def _stop_pairing(self) -> None:
        if self._pairing_loop is not None:
            self._pairing_loop.stop()

    # -- terminal transitions ---------------------------------------------

    def _fail(self, exc: BankIDError, step: str) -> None:
        log.error("Order failed during %s: %s", step, exc.detail)
        kind, detail = exc.event()
        self._finish(WorkerState.INTERNAL_ERROR, kind, detail)

    def _finish(self, state: WorkerState, kind: str, detail: str) -> None:
        self._state = state
        self._release()
        self._emit(kind, detail, terminal=True)

    def _release(self) -> None:
        """Stop the pairing loop and free the registry entry, once."""
        if self._released:
            return
        self._released = True
        self._stop_pairing()
        if self._entry is not None:
            self._registry.discard(self.order_id, self._entry)
        if self._on_release is not None:
            try:
                self._on_release(self)
            except Exception:
                log.exception("Release callback failed")

    def _emit(self, kind: str, detail: str, *, terminal: bool = False) -> None:
        if self._terminal_event is not None:
            log.error("Dropping event '%s' emitted after the terminal event", kind)
            return
        event = OrderEvent(self.order_id, str(kind), detail, terminal=terminal)
        if terminal:
            self._terminal_event = event
        self._sink.emit(event)
