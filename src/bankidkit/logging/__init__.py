"""Logging subsystem for bankidkit.

Public API::

    from bankidkit.logging import configure_logging

    configure_logging(settings.logging)
"""

from bankidkit.logging.setup import bind_order_id, configure_logging

__all__ = ["bind_order_id", "configure_logging"]
