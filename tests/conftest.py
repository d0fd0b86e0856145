"""Root conftest for the bankidkit test suite."""

from __future__ import annotations

import json
import sys
import threading
import time
from collections import defaultdict, deque
from pathlib import Path
from typing import Any

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from bankidkit.config.settings import (  # noqa: E402
    BankIDSettings,
    CertStoreSettings,
    EngineSettings,
    LoggingSettings,
    ServiceSettings,
)
from bankidkit.core.errors import TransportError  # noqa: E402
from bankidkit.transport.base import Transport, TransportResponse  # noqa: E402

# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "service": {"url": "https://appapi2.test.bankid.com/rp/v5.1"},
        "cert_store": {
            "path": "certs",
            "ca_cert_file": "ca.crt",
            "p12_file": "client.p12",
            "p12_password": "qwerty123",
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Settings built directly, bypassing the poll-interval floor
# ---------------------------------------------------------------------------


def make_settings(
    poll_interval_ms: int = 10,
    **engine_overrides: Any,
) -> BankIDSettings:
    """Build a settings tree with a fast poll interval for engine tests."""
    engine = {
        "shutdown_grace_seconds": 0,
        "pairing_interval_seconds": 0.02,
        "pairing_scale": 2,
        "pairing_format": "text",
    }
    engine.update(engine_overrides)
    return BankIDSettings(
        service=ServiceSettings(
            url="https://bankid.test/rp/v5.1",
            host_header=None,
            content_type="application/json",
            poll_interval_ms=poll_interval_ms,
            timeout_seconds=5,
        ),
        cert_store=CertStoreSettings(
            base_dir="/tmp",
            path="",
            ca_cert_file="ca.crt",
            p12_file="client.p12",
            p12_password=None,
            cert_file=None,
            key_file=None,
            key_password=None,
            verify_hostname=False,
        ),
        engine=EngineSettings(**engine),
        logging=LoggingSettings(
            level="DEBUG",
            format="text",
            file=None,
            max_file_size_bytes=10485760,
            backup_count=5,
        ),
    )


@pytest.fixture()
def settings_factory():
    """Return :func:`make_settings` for tests that need custom values."""
    return make_settings


@pytest.fixture()
def fast_settings() -> BankIDSettings:
    return make_settings()


# ---------------------------------------------------------------------------
# Scripted transport
# ---------------------------------------------------------------------------

START_BODY = {
    "orderRef": "ref-1",
    "autoStartToken": "ast-1",
    "qrStartToken": "qst-1",
    "qrStartSecret": "qss-1",
}


class FakeTransport(Transport):
    """In-memory transport with per-operation scripted responses.

    Scripted responses are consumed in order; once an operation's script
    is exhausted its default is returned.  Defaults: ``auth``/``sign``
    answer with :data:`START_BODY`, ``collect`` answers pending with
    ``outstandingTransaction``, ``cancel`` answers ``{}``.

    Every call is recorded in :attr:`calls` as
    ``(operation, payload, monotonic_time)``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict, float]] = []
        self.closed = False
        self._scripts: dict[str, deque] = defaultdict(deque)
        self._defaults: dict[str, Any] = {
            "auth": START_BODY,
            "sign": START_BODY,
            "collect": {"status": "pending", "hintCode": "outstandingTransaction"},
            "cancel": {},
        }
        self._lock = threading.Lock()

    # -- scripting ---------------------------------------------------------

    def script(self, operation: str, *bodies: dict) -> FakeTransport:
        """Queue 200 responses with the given JSON bodies."""
        with self._lock:
            self._scripts[operation].extend(bodies)
        return self

    def script_error(
        self,
        operation: str,
        status: int,
        error_code: str,
        details: str = "",
    ) -> FakeTransport:
        """Queue a non-2xx response carrying an error envelope."""
        body = json.dumps({"errorCode": error_code, "details": details}).encode()
        with self._lock:
            self._scripts[operation].append(TransportResponse(status, body))
        return self

    def script_raw(self, operation: str, status: int, body: bytes) -> FakeTransport:
        with self._lock:
            self._scripts[operation].append(TransportResponse(status, body))
        return self

    def script_raise(self, operation: str, exc: BaseException) -> FakeTransport:
        with self._lock:
            self._scripts[operation].append(exc)
        return self

    def set_default(self, operation: str, body: dict) -> FakeTransport:
        with self._lock:
            self._defaults[operation] = body
        return self

    # -- inspection --------------------------------------------------------

    def operations(self) -> list[str]:
        with self._lock:
            return [op for op, _payload, _t in self.calls]

    def count(self, operation: str) -> int:
        return self.operations().count(operation)

    def times(self, operation: str) -> list[float]:
        with self._lock:
            return [t for op, _payload, t in self.calls if op == operation]

    # -- Transport ---------------------------------------------------------

    def _send(self, operation: str, payload: dict[str, Any]) -> TransportResponse:
        with self._lock:
            self.calls.append((operation, payload, time.monotonic()))
            if self.closed:
                msg = "transport is closed"
                raise TransportError(msg)
            script = self._scripts[operation]
            item = script.popleft() if script else self._defaults[operation]

        if isinstance(item, BaseException):
            raise item
        if isinstance(item, TransportResponse):
            return item
        return TransportResponse(200, json.dumps(item).encode())

    def close(self) -> None:
        with self._lock:
            self.closed = True


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll *predicate* until it returns true or *timeout* expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture()
def waiter():
    """Return :func:`wait_until`."""
    return wait_until


# ---------------------------------------------------------------------------
# Logger cleanup: configure_logging() detaches "bankidkit" from the root
# logger, which would hide records from caplog in later tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_bankidkit_logger():
    yield
    import logging

    logger = logging.getLogger("bankidkit")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
