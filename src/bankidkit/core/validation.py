"""Input validation run before an order is handed to a worker.

All functions are pure: they return ``None`` when the input is
acceptable and a descriptive message otherwise.  Rules are evaluated
in a fixed order and the first failure wins.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bankidkit.core.models import Requirements

log = logging.getLogger(__name__)

PERSONAL_NUMBER_LENGTH = 12
# Encoded-form bound; the protocol limit of 40 000 raw bytes applies
# before the caller's encoding.
MAX_NON_VISIBLE_DATA_LENGTH = 200_000
MAX_VISIBLE_DATA_LENGTH = 40_000
CARD_READER_CLASSES = frozenset({"class1", "class2"})


def validate_end_user_ip(end_user_ip: str) -> str | None:
    """Reject anything that is not an IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(end_user_ip)
    except ValueError:
        return f"invalid IP address: {end_user_ip}"
    return None


def validate_text_to_sign(text: str) -> str | None:
    if len(text) > MAX_VISIBLE_DATA_LENGTH:
        return "parameter userVisibleData data too long"
    return None


def validate_requirements(req: Requirements) -> str | None:
    """Check caller-supplied requirements.

    Certificate policies and issuer constraints are passed through
    unchecked.
    """
    pnr = req.personal_number
    if pnr:
        if not (pnr.isascii() and pnr.isdigit()):
            return "parameter personalNumber malformed"
        if len(pnr) != PERSONAL_NUMBER_LENGTH:
            return "parameter personalNumber must be 12 digits long"
    if len(req.user_non_visible_data) > MAX_NON_VISIBLE_DATA_LENGTH:
        return "parameter userNonVisibleData data too long"
    if req.card_reader and req.card_reader not in CARD_READER_CLASSES:
        return "parameter cardReader set to invalid value"
    return None


def validate_parameters(
    end_user_ip: str,
    text_to_sign: str | None,
    requirements: Requirements | None,
) -> str | None:
    """Validate a whole submission: address, text to sign, requirements."""
    error = validate_end_user_ip(end_user_ip)
    if error is None and text_to_sign:
        error = validate_text_to_sign(text_to_sign)
    if error is None and requirements is not None:
        error = validate_requirements(requirements)
    if error is not None:
        log.debug("Submission rejected: %s", error)
    return error
