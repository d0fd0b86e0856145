"""Registry of started orders.

Maps an order id to its service-assigned order reference and the
cancellation signal of the worker that owns it.  A worker inserts its
own entry right after ``start`` succeeds and removes it when the order
ends; :meth:`OrderRegistry.take` lets ``cancel`` claim an entry
atomically so a signal is raised at most once per entry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    order_ref: str
    cancel_signal: threading.Event


class OrderRegistry:
    """Lock-protected ``order_id -> RegistryEntry`` map."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def register(
        self,
        order_id: str,
        order_ref: str,
        cancel_signal: threading.Event,
    ) -> RegistryEntry:
        """Insert an entry for *order_id*.

        Raises
        ------
        ValueError
            If *order_id* already has an entry.

        """
        entry = RegistryEntry(order_ref=order_ref, cancel_signal=cancel_signal)
        with self._lock:
            if order_id in self._entries:
                msg = f"order id '{order_id}' is already registered"
                raise ValueError(msg)
            self._entries[order_id] = entry
        log.debug("Registered order %s (%d active)", order_id, len(self))
        return entry

    def take(self, order_id: str) -> RegistryEntry | None:
        """Remove and return the entry for *order_id*, if any."""
        with self._lock:
            return self._entries.pop(order_id, None)

    def discard(self, order_id: str, entry: RegistryEntry) -> bool:
        """Remove *entry* if it is still the one registered for *order_id*.

        Returns whether anything was removed.  An entry already claimed
        by ``take`` or ``drain`` is left alone.
        """
        with self._lock:
            if self._entries.get(order_id) is not entry:
                return False
            del self._entries[order_id]
            return True

    def get(self, order_id: str) -> RegistryEntry | None:
        with self._lock:
            return self._entries.get(order_id)

    def drain(self) -> list[tuple[str, RegistryEntry]]:
        """Remove and return every entry."""
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
        return entries

    def order_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
