"""Response sinks: where order workers deliver lifecycle events.

Every worker emits synchronously from its own thread, so events for one
order arrive in the order its state machine produced them.  Events for
different orders may arrive concurrently; both sinks here are safe for
that.

Usage::

    sink = QueueSink()
    engine = SessionEngine(settings, sink)
    order_id = engine.submit("192.0.2.10")
    final = sink.wait_for_terminal(order_id, timeout=300)
"""

from __future__ import annotations

import abc
import logging
import queue
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bankidkit.core.types import EventKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    """One event for one order.

    ``terminal`` is true for the single event that ends an order's
    lifecycle (including a rejected submission).  A "cancel: not found"
    report is not terminal: it says nothing about any running order.
    """

    order_id: str
    kind: str
    detail: str
    terminal: bool = False


class ResponseSink(abc.ABC):
    """Receiver of order lifecycle events.

    Subclasses implement :meth:`on_event`; the engine calls :meth:`emit`.
    """

    def emit(self, event: OrderEvent) -> None:
        self.on_event(event.order_id, event.kind, event.detail)

    @abc.abstractmethod
    def on_event(self, order_id: str, kind: str, detail: str) -> None:
        """Handle one ``(order_id, kind, detail)`` event."""


class CallbackSink(ResponseSink):
    """Adapt a plain ``fn(order_id, kind, detail)`` callable.

    Exceptions raised by the callable are logged and swallowed so a
    faulty consumer cannot break an order's state machine.
    """

    def __init__(self, callback: Callable[[str, str, str], None]) -> None:
        self._callback = callback

    def on_event(self, order_id: str, kind: str, detail: str) -> None:
        try:
            self._callback(order_id, kind, detail)
        except Exception:
            log.exception("Response callback failed for event '%s'", kind)


class QueueSink(ResponseSink):
    """Thread-safe event queue with per-order history.

    Consumers either stream everything with :meth:`get` / :meth:`events`
    or wait for one order with :meth:`wait_for_terminal`.  The two views
    are independent: waiting does not consume queued events.

    The history of an order id covers its current lifecycle only.  A
    resubmitted id starts over at its ``sent`` event (or at the terminal
    event of a submission that never started), so a wait never returns
    the outcome of an earlier order with the same id.  Histories of
    settled ids are kept for the *max_settled* most recent ones; call
    :meth:`forget` to drop one earlier.
    """

    def __init__(self, max_settled: int = 1024) -> None:
        self._queue: queue.Queue[OrderEvent] = queue.Queue()
        self._history: dict[str, list[OrderEvent]] = {}
        self._live: set[str] = set()
        self._settled: OrderedDict[str, None] = OrderedDict()
        self._max_settled = max_settled
        self._cond = threading.Condition()

    def emit(self, event: OrderEvent) -> None:
        with self._cond:
            self._record(event)
            self._cond.notify_all()
        self._queue.put(event)

    def _record(self, event: OrderEvent) -> None:
        order_id = event.order_id
        history = self._history.setdefault(order_id, [])
        starts_lifecycle = event.kind == EventKind.SENT or event.terminal
        if starts_lifecycle and order_id not in self._live and any(e.terminal for e in history):
            history.clear()
        history.append(event)

        if event.kind == EventKind.SENT and not event.terminal:
            self._live.add(order_id)
        elif event.terminal:
            self._live.discard(order_id)

        if order_id in self._live:
            self._settled.pop(order_id, None)
            return
        self._settled[order_id] = None
        self._settled.move_to_end(order_id)
        while len(self._settled) > self._max_settled:
            stale, _ = self._settled.popitem(last=False)
            self._history.pop(stale, None)

    def on_event(self, order_id: str, kind: str, detail: str) -> None:
        self.emit(OrderEvent(order_id, kind, detail))

    # -- streaming ---------------------------------------------------------

    def get(self, timeout: float | None = None) -> OrderEvent:
        """Return the next event; raises :class:`queue.Empty` on timeout."""
        return self._queue.get(timeout=timeout)

    def events(self, timeout: float | None = None) -> Iterator[OrderEvent]:
        """Yield events until none arrives within *timeout* seconds."""
        while True:
            try:
                yield self._queue.get(timeout=timeout)
            except queue.Empty:
                return

    def drain(self) -> list[OrderEvent]:
        """Return every queued event without blocking."""
        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                return drained

    # -- per-order view ----------------------------------------------------

    def forget(self, order_id: str) -> None:
        """Drop the history of a settled *order_id*; live orders are kept."""
        with self._cond:
            if order_id in self._live:
                return
            self._history.pop(order_id, None)
            self._settled.pop(order_id, None)

    def history(self, order_id: str) -> list[OrderEvent]:
        with self._cond:
            return list(self._history.get(order_id, ()))

    def terminal_events(self) -> list[OrderEvent]:
        with self._cond:
            return [e for events in self._history.values() for e in events if e.terminal]

    def wait_for_terminal(self, order_id: str, timeout: float | None = None) -> OrderEvent | None:
        """Block until *order_id* has a terminal event, or *timeout* expires."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                for event in self._history.get(order_id, ()):
                    if event.terminal:
                        return event
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._cond.wait(timeout=remaining)
