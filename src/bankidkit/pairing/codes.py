"""Rotating pairing codes.

The service returns two values when an order starts: a public
``qrStartToken`` and a private ``qrStartSecret``.  The code shown at
step *n* (one step per second since the order started) is::

    bankid.<qrStartToken>.<n>.<hex(HMAC-SHA256(key=qrStartSecret, msg=str(n)))>

rendered as a QR code.  Everything here is a pure function of the two
seeds and the step counter.
"""

from __future__ import annotations

import hashlib
import hmac
import io
from collections.abc import Callable, Iterator
from typing import Any

import segno

from bankidkit.core.errors import PairingCodeError

PAYLOAD_PREFIX = "bankid"


def pairing_payload(start_token: str, start_secret: str, step: int) -> str:
    """Return the textual payload for *step*."""
    digest = hmac.new(
        start_secret.encode("utf-8"),
        str(step).encode("ascii"),
        hashlib.sha256,
    ).hexdigest()
    return f"{PAYLOAD_PREFIX}.{start_token}.{step}.{digest}"


def render_png(payload: str, scale: int = 5) -> bytes:
    """Encode *payload* as a PNG QR code (error level L, no quiet zone)."""
    qr = segno.make_qr(payload, error="l")
    out = io.BytesIO()
    qr.save(out, kind="png", scale=scale, border=0)
    return out.getvalue()


def render_text(payload: str, scale: int = 5) -> str:  # noqa: ARG001
    """Identity renderer for callers that draw the code themselves."""
    return payload


RENDERERS: dict[str, Callable[[str, int], Any]] = {
    "png": render_png,
    "text": render_text,
}


class PairingCodeGenerator:
    """Deterministic sequence of rendered pairing codes for one order.

    Iterating always starts again from step 0, so two generators built
    from the same seeds produce identical sequences.

    Parameters
    ----------
    start_token:
        The public ``qrStartToken``.
    start_secret:
        The ``qrStartSecret`` used as HMAC key.
    renderer:
        Turns a payload string into the value handed to consumers.
    scale:
        Module size passed to the renderer.

    """

    def __init__(
        self,
        start_token: str,
        start_secret: str,
        *,
        renderer: Callable[[str, int], Any] = render_png,
        scale: int = 5,
    ) -> None:
        self._start_token = start_token
        self._start_secret = start_secret
        self._renderer = renderer
        self._scale = scale

    def payload_at(self, step: int) -> str:
        if step < 0:
            msg = f"step must be >= 0 (got {step})"
            raise ValueError(msg)
        return pairing_payload(self._start_token, self._start_secret, step)

    def code_at(self, step: int) -> Any:  # noqa: ANN401
        """Return the rendered code for *step*.

        Raises
        ------
        PairingCodeError
            If deriving or encoding the code fails.

        """
        try:
            return self._renderer(self.payload_at(step), self._scale)
        except Exception as exc:
            msg = f"failed to generate pairing code: {exc}"
            raise PairingCodeError(msg) from exc

    def __iter__(self) -> Iterator[Any]:
        step = 0
        while True:
            yield self.code_at(step)
            step += 1
