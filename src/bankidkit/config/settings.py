"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the library actually reads.

Access pattern::

    from bankidkit.config import load_settings

    settings = load_settings("config.yaml")
    print(settings.service.url, settings.service.poll_interval)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

# The service asks integrators not to collect more often than this.
MIN_POLL_INTERVAL_MS = 2000

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceSettings:
    """Remote service endpoint and polling cadence."""

    url: str
    host_header: str | None
    content_type: str
    poll_interval_ms: int
    timeout_seconds: float

    @property
    def poll_interval(self) -> float:
        """Effective delay between ``collect`` calls, in seconds."""
        return self.poll_interval_ms / 1000


def _build_service(data: dict | None) -> ServiceSettings:
    d = data or {}
    requested = d.get("poll_interval_ms", MIN_POLL_INTERVAL_MS)
    poll_interval_ms = max(requested, MIN_POLL_INTERVAL_MS)
    if poll_interval_ms != requested:
        log.warning(
            "service.poll_interval_ms (%d) is below the minimum, using %d",
            requested,
            MIN_POLL_INTERVAL_MS,
        )
    return ServiceSettings(
        url=d["url"],
        host_header=d.get("host_header"),
        content_type=d.get("content_type", "application/json"),
        poll_interval_ms=poll_interval_ms,
        timeout_seconds=d.get("timeout_seconds", 30),
    )


# ---------------------------------------------------------------------------
# Certificate store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertStoreSettings:
    """Client identity and trust anchor for the mutual-TLS transport.

    Either ``p12_file`` or the ``cert_file``/``key_file`` pair names the
    client identity.  Relative file names are resolved by :meth:`resolve`.
    """

    base_dir: str
    path: str
    ca_cert_file: str
    p12_file: str | None
    p12_password: str | None
    cert_file: str | None
    key_file: str | None
    key_password: str | None
    verify_hostname: bool

    def resolve(self, file_name: str) -> Path:
        """Return the absolute path of *file_name* inside the cert store.

        Absolute file names are returned unchanged; an absolute store
        ``path`` is used as the base, otherwise the store path is taken
        relative to ``base_dir`` (the config file's directory).
        """
        name = Path(file_name)
        if name.is_absolute():
            return name
        store = Path(self.path)
        if store.is_absolute():
            return store / name
        return Path(self.base_dir) / store / name

    @property
    def uses_p12(self) -> bool:
        return bool(self.p12_file)


def _build_cert_store(data: dict | None, base_dir: str) -> CertStoreSettings:
    d = data or {}
    return CertStoreSettings(
        base_dir=base_dir,
        path=d.get("path", ""),
        ca_cert_file=d["ca_cert_file"],
        p12_file=d.get("p12_file"),
        p12_password=d.get("p12_password"),
        cert_file=d.get("cert_file"),
        key_file=d.get("key_file"),
        key_password=d.get("key_password"),
        verify_hostname=d.get("verify_hostname", False),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """Session engine behaviour (shutdown policy, pairing codes)."""

    shutdown_grace_seconds: float
    pairing_interval_seconds: float
    pairing_scale: int
    pairing_format: str


def _build_engine(data: dict | None) -> EngineSettings:
    d = data or {}
    return EngineSettings(
        shutdown_grace_seconds=d.get("shutdown_grace_seconds", 0),
        pairing_interval_seconds=d.get("pairing_interval_seconds", 1.0),
        pairing_scale=d.get("pairing_scale", 5),
        pairing_format=d.get("pairing_format", "png"),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Library logging configuration (level, format, optional file)."""

    level: str
    format: str
    file: str | None
    max_file_size_bytes: int
    backup_count: int


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
        file=d.get("file"),
        max_file_size_bytes=d.get("max_file_size_bytes", 10485760),
        backup_count=d.get("backup_count", 5),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BankIDSettings:
    """Complete, typed configuration tree."""

    service: ServiceSettings
    cert_store: CertStoreSettings
    engine: EngineSettings
    logging: LoggingSettings


def build_settings(data: dict[str, Any], base_dir: str = ".") -> BankIDSettings:
    """Materialise the settings tree from a validated config dict.

    Parameters
    ----------
    data:
        Config document with environment variables already resolved.
    base_dir:
        Directory that relative certificate store paths are resolved
        against, normally the config file's directory.

    """
    return BankIDSettings(
        service=_build_service(data.get("service")),
        cert_store=_build_cert_store(data.get("cert_store"), base_dir),
        engine=_build_engine(data.get("engine")),
        logging=_build_logging(data.get("logging")),
    )
