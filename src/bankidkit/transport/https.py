"""Mutual-TLS HTTPS transport.

POSTs JSON to ``{service.url}/{operation}`` with a client certificate
taken from the configured certificate store:

- **PKCS#12 bundle** (``p12_file`` + ``p12_password``), decoded with
  ``cryptography``
- **Split PEM** (``cert_file`` + ``key_file`` + optional
  ``key_password``)

The service's CA certificate (``ca_cert_file``) is the only trust
anchor.  Hostname checking is off unless ``verify_hostname`` is set,
because the service's test environment uses a self-signed CA.

All requests go through one opener and are serialised with a lock, so
the transport can be shared by any number of order workers.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import ssl
import tempfile
import threading
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from bankidkit.core.errors import TransportError
from bankidkit.logging.sanitize import sanitize_for_logs
from bankidkit.transport.base import Transport, TransportResponse

if TYPE_CHECKING:
    from bankidkit.config.settings import CertStoreSettings, ServiceSettings

log = logging.getLogger(__name__)


def _p12_to_pem(data: bytes, password: str | None) -> bytes:
    """Return the key and certificate chain of a PKCS#12 bundle as PEM."""
    key, cert, extra = pkcs12.load_key_and_certificates(
        data,
        password.encode("utf-8") if password else None,
    )
    if key is None or cert is None:
        msg = "PKCS#12 bundle does not contain both a private key and a certificate"
        raise ValueError(msg)
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    for c in (cert, *extra):
        pem += c.public_bytes(serialization.Encoding.PEM)
    return pem


def load_client_identity(ctx: ssl.SSLContext, cert_store: CertStoreSettings) -> None:
    """Load the client certificate and key from *cert_store* into *ctx*.

    ``SSLContext.load_cert_chain`` only reads files, so a PKCS#12 bundle
    is written to a private temporary PEM file for the duration of the
    call and removed immediately afterwards.
    """
    if cert_store.uses_p12:
        p12_path = cert_store.resolve(cert_store.p12_file)  # type: ignore[arg-type]
        pem = _p12_to_pem(p12_path.read_bytes(), cert_store.p12_password)
        fd, tmp_name = tempfile.mkstemp(prefix="bankidkit-", suffix=".pem")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(pem)
            ctx.load_cert_chain(tmp_name)
        finally:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)  # noqa: PTH108
        return

    ctx.load_cert_chain(
        str(cert_store.resolve(cert_store.cert_file)),  # type: ignore[arg-type]
        str(cert_store.resolve(cert_store.key_file)),  # type: ignore[arg-type]
        password=cert_store.key_password,
    )


def build_ssl_context(cert_store: CertStoreSettings) -> ssl.SSLContext:
    """Build an SSL context with the client identity and CA trust anchor."""
    ctx = ssl.create_default_context(
        cafile=str(cert_store.resolve(cert_store.ca_cert_file)),
    )
    if not cert_store.verify_hostname:
        ctx.check_hostname = False
    load_client_identity(ctx, cert_store)
    return ctx


class HttpsTransport(Transport):
    """Shared mutual-TLS transport to the remote service.

    Parameters
    ----------
    service:
        The ``service`` configuration section.
    cert_store:
        The ``cert_store`` configuration section.
    ssl_context:
        Pre-built context; when omitted one is built from *cert_store*.

    Raises
    ------
    TransportError
        If the TLS material cannot be loaded.

    """

    def __init__(
        self,
        service: ServiceSettings,
        cert_store: CertStoreSettings | None = None,
        *,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self._service = service
        if ssl_context is None:
            if cert_store is None:
                msg = "either cert_store or ssl_context is required"
                raise TransportError(msg)
            try:
                ssl_context = build_ssl_context(cert_store)
            except (OSError, ValueError, ssl.SSLError) as exc:
                msg = f"could not load TLS material: {exc}"
                raise TransportError(msg) from exc
        self._opener = urllib.request.build_opener(
            urllib.request.HTTPSHandler(context=ssl_context),
        )
        self._lock = threading.Lock()
        # Separate from the send lock; close() never waits on a request.
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _build_request(self, url: str, payload: dict[str, Any]) -> urllib.request.Request:
        """Build a POST request with the configured headers and JSON body."""
        req = urllib.request.Request(  # noqa: S310
            url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": self._service.content_type,
                "Accept": "application/json",
            },
        )
        if self._service.host_header:
            req.add_header("Host", self._service.host_header)
        return req

    def _send(self, operation: str, payload: dict[str, Any]) -> TransportResponse:
        url = f"{self._service.url}/{operation}"
        req = self._build_request(url, payload)
        log.debug("POST %s %s", url, sanitize_for_logs(payload))

        with self._lock:
            if self._closed.is_set():
                msg = "transport is closed"
                raise TransportError(msg)
            try:
                with self._opener.open(req, timeout=self._service.timeout_seconds) as resp:
                    status, body = resp.status, resp.read()
            except urllib.error.HTTPError as exc:
                # Non-2xx answers carry an error envelope the worker parses.
                body = b""
                with contextlib.suppress(OSError):
                    body = exc.read()
                status = exc.code
            except (urllib.error.URLError, OSError) as exc:
                msg = f"Failed to reach service at {url}: {exc}"
                raise TransportError(msg) from exc

        if self._closed.is_set():
            msg = "transport was closed during the request"
            raise TransportError(msg)
        log.debug("POST %s -> HTTP %d (%d bytes)", url, status, len(body))
        return TransportResponse(status=status, body=body)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        log.debug("HTTPS transport closed")
