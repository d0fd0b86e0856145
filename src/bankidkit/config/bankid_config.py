"""Configuration loader for bankidkit.

Lifecycle::

    # 1. The embedding application loads the file once
    config = BankIDConfig(config_file="/etc/bankidkit/config.yaml")

    # 2. Typed settings are handed to the engine explicitly
    engine = SessionEngine(config.settings, sink)

    # 3. Dynamic access for anything not modelled
    config.get("service.url", default="https://localhost")

There is deliberately no module-level singleton: every consumer receives
the settings it needs from its caller.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from bankidkit.config.settings import BankIDSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_document(config_file: Path) -> dict:
    """Parse *config_file* as YAML or JSON depending on its suffix."""
    try:
        with config_file.open(encoding="utf-8") as f:
            if config_file.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as exc:
        msg = f"could not read file {config_file}: {exc}"
        raise ConfigValidationError([msg]) from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"could not parse config file {config_file}: {exc}"
        raise ConfigValidationError([msg]) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"config file {config_file} must contain a mapping at the top level"
        raise ConfigValidationError([msg])
    return data


def _load_schema() -> dict:
    with _SCHEMA_PATH.open(encoding="utf-8") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class BankIDConfig:
    """Loaded, validated configuration.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.

    Parameters
    ----------
    config_file:
        Path to the YAML/JSON configuration file.

    Raises
    ------
    ConfigValidationError
        If the file cannot be read, fails schema validation, or fails
        cross-field checks.

    """

    def __init__(self, *, config_file: str | Path) -> None:
        self._source = Path(config_file).resolve()
        self._data = _read_document(self._source)
        # Env vars are resolved before schema validation so substituted
        # values are checked against enum constraints.
        _resolve_env_vars(self._data)
        self._validate_schema()
        self.additional_checks()
        self._settings = build_settings(
            self._data,
            base_dir=str(self._source.parent),
        )

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> BankIDSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict:
        """The resolved raw configuration document."""
        return self._data

    @property
    def source(self) -> Path:
        return self._source

    def get(self, dotted: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the value at dot-path *dotted*, or *default*."""
        node: Any = self._data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        validator = Draft202012Validator(_load_schema())
        errors = [
            f"{'.'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}"
            for err in sorted(
                validator.iter_errors(self._data),
                key=lambda e: list(e.absolute_path),
            )
        ]
        if errors:
            raise ConfigValidationError(errors)

    def additional_checks(self) -> None:
        """Semantic & cross-field validation.

        Runs after schema validation passes, so every section that is
        present has the right shape.
        """
        errors: list[str] = []
        warnings: list[str] = []

        service = self._data.get("service") or {}
        cert_store = self._data.get("cert_store") or {}

        # -- service --
        url = service.get("url", "")
        if url.endswith("/"):
            errors.append(f"service.url must not end with '/' (got '{url}')")

        # -- cert store --
        has_p12 = bool(cert_store.get("p12_file"))
        has_cert = bool(cert_store.get("cert_file"))
        has_key = bool(cert_store.get("key_file"))
        if has_cert != has_key:
            errors.append(
                "cert_store.cert_file and cert_store.key_file must be configured together",
            )
        if not has_p12 and not (has_cert and has_key):
            errors.append(
                "cert_store.p12_file or cert_store.cert_file + "
                "cert_store.key_file is required",
            )
        if has_p12 and has_cert:
            warnings.append(
                "both cert_store.p12_file and cert_store.cert_file are set, "
                "the PKCS#12 bundle is used",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"<BankIDConfig config_file={self._source}>"


def load_settings(config_file: str | Path) -> BankIDSettings:
    """Load *config_file* and return its typed settings tree."""
    return BankIDConfig(config_file=config_file).settings
