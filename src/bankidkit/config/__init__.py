"""Configuration subsystem for bankidkit.

Public API::

    from bankidkit.config import BankIDConfig, load_settings

    config = BankIDConfig(config_file="config.yaml")
    interval = config.settings.service.poll_interval  # typed access
    url = config.get("service.url")                   # dynamic dot-path
"""

from bankidkit.config.bankid_config import (
    BankIDConfig,
    ConfigValidationError,
    load_settings,
)
from bankidkit.config.settings import (
    MIN_POLL_INTERVAL_MS,
    BankIDSettings,
    CertStoreSettings,
    EngineSettings,
    LoggingSettings,
    ServiceSettings,
    build_settings,
)

__all__ = [
    "MIN_POLL_INTERVAL_MS",
    "BankIDConfig",
    "BankIDSettings",
    "CertStoreSettings",
    "ConfigValidationError",
    "EngineSettings",
    "LoggingSettings",
    "ServiceSettings",
    "build_settings",
    "load_settings",
]
