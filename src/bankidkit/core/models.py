"""Wire models for the remote ``auth``/``sign``, ``collect`` and ``cancel`` operations.

Request models render themselves with ``to_wire()``; response models
parse raw response bodies with ``from_json()`` and raise
:class:`~bankidkit.core.errors.ProtocolError` on anything malformed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from bankidkit.core.errors import ProtocolError, RemoteError
from bankidkit.core.types import OrderKind


def _decode(body: bytes, what: str) -> dict:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"failed to decode {what}: {exc}"
        raise ProtocolError(msg) from exc
    if not isinstance(data, dict):
        msg = f"failed to decode {what}: expected a JSON object"
        raise ProtocolError(msg)
    return data


def _str(data: dict, key: str) -> str:
    value = data.get(key, "")
    return value if isinstance(value, str) else str(value)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Requirements:
    """Optional constraints on an order, immutable once submitted.

    ``personal_number`` and ``user_non_visible_data`` are top-level
    request fields on the wire; the rest form the ``requirement`` object.
    Whether ``card_reader`` and ``certificate_policies`` are used
    together sensibly is left to the caller.
    """

    personal_number: str = ""
    user_non_visible_data: str = ""
    card_reader: str = ""
    certificate_policies: tuple[str, ...] = ()
    issuer_cn: tuple[str, ...] = ()
    token_start_required: bool = False
    allow_fingerprint: bool = False

    def to_wire(self) -> dict[str, Any]:
        requirement: dict[str, Any] = {}
        if self.card_reader:
            requirement["cardReader"] = self.card_reader
        if self.certificate_policies:
            requirement["certificatePolicies"] = list(self.certificate_policies)
        if self.issuer_cn:
            requirement["issuerCn"] = list(self.issuer_cn)
        if self.token_start_required:
            requirement["tokenStartRequired"] = True
        if self.allow_fingerprint:
            requirement["allowFingerprint"] = True
        return requirement


@dataclass(frozen=True)
class OrderRequest:
    """Everything needed to start one order."""

    end_user_ip: str
    user_visible_data: str = ""
    requirements: Requirements | None = None

    @property
    def kind(self) -> OrderKind:
        """``sign`` when anything is to be signed, ``auth`` otherwise."""
        if self.user_visible_data:
            return OrderKind.SIGN
        if self.requirements is not None and self.requirements.user_non_visible_data:
            return OrderKind.SIGN
        return OrderKind.AUTH

    @property
    def operation(self) -> str:
        return self.kind.value

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"endUserIp": self.end_user_ip}
        if self.user_visible_data:
            payload["userVisibleData"] = self.user_visible_data
        req = self.requirements
        if req is not None:
            if req.personal_number:
                payload["personalNumber"] = req.personal_number
            if req.user_non_visible_data:
                payload["userNonVisibleData"] = req.user_non_visible_data
            requirement = req.to_wire()
            if requirement:
                payload["requirement"] = requirement
        return payload


def order_ref_payload(order_ref: str) -> dict[str, str]:
    """Body of the ``collect`` and ``cancel`` requests."""
    return {"orderRef": order_ref}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartResponse:
    """Answer to ``auth``/``sign``: the order reference and pairing seeds."""

    order_ref: str
    auto_start_token: str
    qr_start_token: str
    qr_start_secret: str

    @classmethod
    def from_json(cls, body: bytes) -> StartResponse:
        data = _decode(body, "start response")
        order_ref = _str(data, "orderRef")
        if not order_ref:
            msg = "start response is missing orderRef"
            raise ProtocolError(msg)
        return cls(
            order_ref=order_ref,
            auto_start_token=_str(data, "autoStartToken"),
            qr_start_token=_str(data, "qrStartToken"),
            qr_start_secret=_str(data, "qrStartSecret"),
        )

    @property
    def has_pairing_seeds(self) -> bool:
        return bool(self.qr_start_token and self.qr_start_secret)


@dataclass(frozen=True)
class Device:
    ip_address: str = ""


@dataclass(frozen=True)
class CertValidity:
    not_before: str = ""
    not_after: str = ""


@dataclass(frozen=True)
class CompletionUser:
    personal_number: str = ""
    name: str = ""
    given_name: str = ""
    surname: str = ""


@dataclass(frozen=True)
class CompletionData:
    """Result record attached to a ``complete`` collect response."""

    user: CompletionUser = field(default_factory=CompletionUser)
    device: Device = field(default_factory=Device)
    cert: CertValidity = field(default_factory=CertValidity)
    signature: str = ""
    ocsp_response: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> CompletionData:
        user = data.get("user") or {}
        device = data.get("device") or {}
        cert = data.get("cert") or {}
        return cls(
            user=CompletionUser(
                personal_number=_str(user, "personalNumber"),
                name=_str(user, "name"),
                given_name=_str(user, "givenName"),
                surname=_str(user, "surname"),
            ),
            device=Device(ip_address=_str(device, "ipAddress")),
            cert=CertValidity(
                not_before=_str(cert, "notBefore"),
                not_after=_str(cert, "notAfter"),
            ),
            signature=_str(data, "signature"),
            ocsp_response=_str(data, "ocspResponse"),
        )


@dataclass(frozen=True)
class CollectResponse:
    """Answer to ``collect``.

    ``status`` is kept as the raw string so the worker can report an
    unrecognised value instead of failing to parse it.
    """

    status: str
    hint_code: str = ""
    order_ref: str = ""
    completion_data: CompletionData | None = None

    @classmethod
    def from_json(cls, body: bytes) -> CollectResponse:
        data = _decode(body, "collect response")
        if "status" not in data:
            msg = "collect response is missing status"
            raise ProtocolError(msg)
        completion = data.get("completionData")
        return cls(
            status=_str(data, "status"),
            hint_code=_str(data, "hintCode"),
            order_ref=_str(data, "orderRef"),
            completion_data=(
                CompletionData.from_dict(completion) if isinstance(completion, dict) else None
            ),
        )


@dataclass(frozen=True)
class ErrorEnvelope:
    """Body of every non-2xx response."""

    error_code: str
    details: str

    @classmethod
    def from_json(cls, body: bytes) -> ErrorEnvelope:
        data = _decode(body, "error response")
        error_code = _str(data, "errorCode")
        if not error_code:
            msg = "error response is missing errorCode"
            raise ProtocolError(msg)
        return cls(error_code=error_code, details=_str(data, "details"))

    def to_exception(self, status: int) -> RemoteError:
        return RemoteError(self.error_code, self.details, status=status)
