"""Background emission of pairing codes while an order is outstanding.

Usage::

    loop = PairingCodeLoop(generator, order_id, on_code, on_error=worker_fail)
    loop.start()
    ...
    loop.stop()   # no code is delivered after this returns
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from bankidkit.core.errors import PairingCodeError

if TYPE_CHECKING:
    from collections.abc import Callable

    from bankidkit.pairing.codes import PairingCodeGenerator

log = logging.getLogger(__name__)

# Upper bound on how long stop() waits for the loop thread to exit.
_JOIN_TIMEOUT = 5.0


class PairingCodeLoop:
    """Emit one pairing code per *interval* until stopped.

    The first code is delivered one interval after :meth:`start`.
    A generator failure is reported once through *on_error* and ends
    this loop only; an exception from *callback* is logged and the loop
    keeps going.

    Parameters
    ----------
    generator:
        Source of rendered codes.
    order_id:
        Passed back to *callback* with every code.
    callback:
        ``callback(code, order_id)``.
    on_error:
        ``on_error(exc)`` called from the loop thread on generator failure.
    interval:
        Seconds between codes.

    """

    def __init__(
        self,
        generator: PairingCodeGenerator,
        order_id: str,
        callback: Callable[[Any, str], None],
        *,
        on_error: Callable[[PairingCodeError], None] | None = None,
        interval: float = 1.0,
    ) -> None:
        self._generator = generator
        self._order_id = order_id
        self._callback = callback
        self._on_error = on_error
        self._interval = interval
        self._stop_event = threading.Event()
        # Held while a code is being delivered so stop() can wait it out.
        self._emit_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run,
            name=f"bankidkit-pairing-{order_id}",
            daemon=True,
        )
        self._emitted = 0

    @property
    def emitted(self) -> int:
        """Number of codes delivered so far."""
        return self._emitted

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        """Stop emitting.  Safe to call repeatedly and from any thread."""
        self._stop_event.set()
        if threading.current_thread() is self._thread:
            return
        # Wait for an in-progress delivery to finish.
        with self._emit_lock:
            pass
        if self._thread.is_alive():
            self._thread.join(timeout=_JOIN_TIMEOUT)

    def _run(self) -> None:
        codes = iter(self._generator)
        while not self._stop_event.wait(self._interval):
            try:
                code = next(codes)
            except PairingCodeError as exc:
                log.error("Pairing code generation failed for %s: %s", self._order_id, exc)
                self._stop_event.set()
                if self._on_error is not None:
                    self._on_error(exc)
                return

            with self._emit_lock:
                if self._stop_event.is_set():
                    return
                try:
                    self._callback(code, self._order_id)
                except Exception:
                    log.exception("Pairing code callback failed for %s", self._order_id)
                self._emitted += 1
