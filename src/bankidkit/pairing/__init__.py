"""Rotating pairing codes (animated QR) for outstanding orders."""

from bankidkit.pairing.codes import (
    RENDERERS,
    PairingCodeGenerator,
    pairing_payload,
    render_png,
    render_text,
)
from bankidkit.pairing.loop import PairingCodeLoop

__all__ = [
    "RENDERERS",
    "PairingCodeGenerator",
    "PairingCodeLoop",
    "pairing_payload",
    "render_png",
    "render_text",
]
