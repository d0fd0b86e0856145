"""``auth`` and ``sign`` subcommands: run one order in the foreground."""

from __future__ import annotations

import base64
import dataclasses
import logging
import queue
import sys
import time

from bankidkit.core.models import Requirements
from bankidkit.core.types import EventKind
from bankidkit.engine import QueueSink, SessionEngine

log = logging.getLogger(__name__)

# How long to wait for the service to acknowledge a cancel on Ctrl-C.
_CANCEL_WAIT_SECONDS = 30.0


def _encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _print_code(payload: str, order_id: str) -> None:  # noqa: ARG001
    import segno

    segno.make_qr(payload, error="l").terminal(border=1)


def run_order(config, args, *, transport=None) -> int:
    """Submit one order and print its events until it ends.

    Returns the process exit status: 0 when the order completed.
    """
    settings = config.settings
    if args.qr:
        # The terminal renders the raw payload itself.
        settings = dataclasses.replace(
            settings,
            engine=dataclasses.replace(settings.engine, pairing_format="text"),
        )

    requirements = None
    hidden = getattr(args, "hidden_data", "")
    if args.personal_number or hidden:
        requirements = Requirements(
            personal_number=args.personal_number,
            user_non_visible_data=_encode(hidden) if hidden else "",
        )
    text = getattr(args, "text", None)

    sink = QueueSink()
    try:
        engine = SessionEngine(settings, sink, transport=transport)
    except Exception as exc:  # noqa: BLE001
        print(f"bankidkit: error: {exc}", file=sys.stderr)  # noqa: T201
        return 1

    final = None
    order_id = None
    try:
        order_id = engine.submit(
            args.end_user_ip,
            order_id=args.order_id,
            text_to_sign=_encode(text) if text else None,
            requirements=requirements,
            on_pairing_code=_print_code if args.qr else None,
        )
        deadline = None if args.timeout is None else time.monotonic() + args.timeout
        cancelled = False
        while final is None:
            try:
                event = sink.get(timeout=0.5)
            except queue.Empty:
                if not cancelled and deadline is not None and time.monotonic() >= deadline:
                    log.info("Order %s timed out, cancelling", order_id)
                    engine.cancel(order_id)
                    cancelled = True
                continue
            print(f"{event.order_id}  {event.kind:<24} {event.detail}")  # noqa: T201
            if event.terminal and event.order_id == order_id:
                final = event
    except KeyboardInterrupt:
        if order_id is None:
            return 1
        engine.cancel(order_id)
        final = sink.wait_for_terminal(order_id, timeout=_CANCEL_WAIT_SECONDS)
        if final is not None:
            print(f"{final.order_id}  {final.kind:<24} {final.detail}")  # noqa: T201
    finally:
        engine.shutdown()

    return 0 if final is not None and final.kind == EventKind.COMPLETE else 1
