"""Tests for the typed settings builders."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from bankidkit.config import settings as settings_mod
from bankidkit.config.settings import build_settings

_BASE = {
    "service": {"url": "https://bankid.test/rp/v5.1"},
    "cert_store": {"ca_cert_file": "ca.crt", "p12_file": "client.p12"},
}


def _with(section: str, **values) -> dict:
    data = {k: dict(v) for k, v in _BASE.items()}
    data.setdefault(section, {}).update(values)
    return data


class TestServiceSettings:
    def test_defaults(self):
        s = build_settings(_BASE).service
        assert s.poll_interval_ms == settings_mod.MIN_POLL_INTERVAL_MS
        assert s.poll_interval == 2.0
        assert s.host_header is None
        assert s.timeout_seconds == 30

    def test_interval_above_floor_kept(self):
        s = build_settings(_with("service", poll_interval_ms=3500)).service
        assert s.poll_interval_ms == 3500
        assert s.poll_interval == 3.5

    def test_interval_below_floor_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="bankidkit.config.settings"):
            s = build_settings(_with("service", poll_interval_ms=500)).service
        assert s.poll_interval_ms == 2000
        assert "below the minimum" in caplog.text

    def test_floor_read_at_build_time(self, monkeypatch):
        monkeypatch.setattr(settings_mod, "MIN_POLL_INTERVAL_MS", 100)
        s = build_settings(_with("service", poll_interval_ms=10)).service
        assert s.poll_interval_ms == 100

    def test_settings_are_frozen(self):
        s = build_settings(_BASE).service
        with pytest.raises(AttributeError):
            s.url = "https://elsewhere.test"  # type: ignore[misc]


class TestCertStoreSettings:
    def test_relative_store_under_base_dir(self):
        cs = build_settings(_with("cert_store", path="certs"), base_dir="/etc/bankid").cert_store
        assert cs.resolve("ca.crt") == Path("/etc/bankid/certs/ca.crt")

    def test_absolute_store_path(self):
        cs = build_settings(_with("cert_store", path="/srv/certs"), base_dir="/etc").cert_store
        assert cs.resolve("ca.crt") == Path("/srv/certs/ca.crt")

    def test_absolute_file_name_unchanged(self):
        cs = build_settings(_with("cert_store", path="certs")).cert_store
        assert cs.resolve("/opt/ca.crt") == Path("/opt/ca.crt")

    def test_uses_p12(self):
        assert build_settings(_BASE).cert_store.uses_p12 is True
        data = _with("cert_store", p12_file=None, cert_file="c.pem", key_file="k.pem")
        assert build_settings(data).cert_store.uses_p12 is False


class TestEngineAndLoggingSettings:
    def test_engine_defaults(self):
        e = build_settings(_BASE).engine
        assert e.shutdown_grace_seconds == 0
        assert e.pairing_interval_seconds == 1.0
        assert e.pairing_scale == 5
        assert e.pairing_format == "png"

    def test_logging_defaults(self):
        lg = build_settings(_BASE).logging
        assert lg.level == "INFO"
        assert lg.format == "text"
        assert lg.file is None
        assert lg.backup_count == 5
