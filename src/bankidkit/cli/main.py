"""bankidkit command-line entry point.

Usage::

    bankidkit -c config.yaml --validate-only
    bankidkit -c config.yaml auth --ip 192.0.2.10 --qr
    bankidkit -c config.yaml sign --ip 192.0.2.10 --personal-number 199001011234 --text "Pay 100 SEK"
    python -m bankidkit -c config.yaml auth --ip 192.0.2.10
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from bankidkit import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bankidkit",
        description="bankidkit: run BankID authentication and signature orders",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")
    for name, help_text in [
        ("auth", "Start an authentication order and follow it to the end"),
        ("sign", "Start a signature order and follow it to the end"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--ip", required=True, dest="end_user_ip", help="End user IP address")
        p.add_argument("--personal-number", default="", help="12-digit personal number")
        p.add_argument("--order-id", default=None, help="Order id (generated if omitted)")
        p.add_argument(
            "--qr",
            action="store_true",
            default=False,
            help="Print a fresh pairing QR code to the terminal every second",
        )
        p.add_argument(
            "--timeout",
            type=float,
            default=None,
            metavar="SECONDS",
            help="Cancel the order if it has not ended after this long",
        )
        if name == "sign":
            p.add_argument("--text", required=True, help="Text shown to the user to sign")
            p.add_argument("--hidden-data", default="", help="Data signed but not shown")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"bankidkit: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs a command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from bankidkit.config import BankIDConfig, ConfigValidationError

        config = BankIDConfig(config_file=config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from bankidkit.logging import configure_logging

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    if args.command in ("auth", "sign"):
        from bankidkit.cli.commands.order import run_order

        sys.exit(run_order(config, args))

    parser.print_help(sys.stderr)
    sys.exit(2)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    identity = s.cert_store.p12_file if s.cert_store.uses_p12 else s.cert_store.cert_file
    lines = [
        f"config:        {config.source}",
        f"service:       {s.service.url}",
        f"poll interval: {s.service.poll_interval:.1f}s",
        f"client cert:   {s.cert_store.resolve(identity)}",
        f"ca cert:       {s.cert_store.resolve(s.cert_store.ca_cert_file)}",
        f"logging:       {s.logging.level} ({s.logging.format})",
    ]
    print("\n".join(lines))  # noqa: T201
