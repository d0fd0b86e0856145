"""Tests for the bankidkit CLI entry point (bankidkit.cli.main).

``main()`` uses deferred imports, so patches target the source modules
(e.g. ``bankidkit.cli.commands.order.run_order``), not
``bankidkit.cli.main``.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from bankidkit.cli.main import _build_parser, main


@pytest.fixture
def parser():
    """Return a freshly built ArgumentParser."""
    return _build_parser()


class TestBuildParser:
    def test_config_required(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["auth", "--ip", "192.0.2.10"])

    def test_auth_args(self, parser):
        args = parser.parse_args(["-c", "x.yaml", "auth", "--ip", "192.0.2.10", "--qr"])
        assert args.command == "auth"
        assert args.end_user_ip == "192.0.2.10"
        assert args.qr is True
        assert args.personal_number == ""
        assert args.timeout is None

    def test_auth_requires_ip(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["-c", "x.yaml", "auth"])

    def test_sign_requires_text(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["-c", "x.yaml", "sign", "--ip", "192.0.2.10"])

    def test_sign_args(self, parser):
        args = parser.parse_args(
            [
                "-c",
                "x.yaml",
                "sign",
                "--ip",
                "192.0.2.10",
                "--personal-number",
                "199001011234",
                "--text",
                "Pay 100 SEK",
                "--hidden-data",
                "invoice 7",
                "--timeout",
                "90",
            ]
        )
        assert args.text == "Pay 100 SEK"
        assert args.hidden_data == "invoice 7"
        assert args.timeout == 90.0

    def test_version(self, parser, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


class TestMain:
    def test_missing_config_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", str(tmp_path / "nope.yaml"), "--validate-only"])
        assert exc_info.value.code == 1
        assert "configuration file not found" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("service:\n  url: ftp://nowhere\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", str(cfg), "--validate-only"])
        assert exc_info.value.code == 1
        assert "Configuration validation failed" in capsys.readouterr().err

    def test_validate_only(self, tmp_config_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", str(tmp_config_file), "--validate-only"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "https://appapi2.test.bankid.com/rp/v5.1" in out
        assert "client.p12" in out

    def test_no_command(self, tmp_config_file):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", str(tmp_config_file)])
        assert exc_info.value.code == 2

    def test_dispatches_order_command(self, tmp_config_file):
        with patch("bankidkit.cli.commands.order.run_order", return_value=0) as mock_run:
            with pytest.raises(SystemExit) as exc_info:
                main(["-c", str(tmp_config_file), "auth", "--ip", "192.0.2.10"])
        assert exc_info.value.code == 0
        config, args = mock_run.call_args[0]
        assert config.settings.service.url.endswith("/rp/v5.1")
        assert args.end_user_ip == "192.0.2.10"

    def test_exit_status_from_command(self, tmp_config_file):
        with patch("bankidkit.cli.commands.order.run_order", return_value=1):
            with pytest.raises(SystemExit) as exc_info:
                main(["-c", str(tmp_config_file), "sign", "--ip", "::1", "--text", "hi"])
        assert exc_info.value.code == 1
