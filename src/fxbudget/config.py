"""Configuration management for fxbudget."""

import json
import logging
import os
import re
from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any

from fxbudget.utils.parsing import to_decimal

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILENAME = "config.json"
CACHE_FILENAME = "rates.json"

DEFAULT_BASE_CURRENCY = "USD"
DEFAULT_BUDGET_LIMIT = Decimal("5000")
DEFAULT_ALERT_THRESHOLD = Decimal("0.8")

# Leading numeric prefix, the way spreadsheet users type "80 %" or "5000 USD"
_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or unreadable."""


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "fxbudget"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def get_cache_path() -> Path:
    """Get the exchange rate cache file path (XDG compliant)."""
    xdg_cache_home = os.getenv("XDG_CACHE_HOME", str(Path.home() / ".cache"))
    return Path(xdg_cache_home) / "fxbudget" / CACHE_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/fxbudget/config.json
    """
    config_paths = [
        Path(CONFIG_FILENAME),
        get_config_path(),
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file.

    Raises:
        ConfigurationError: If the file is missing or not a JSON object
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a JSON object")
    return data


def save_json_config(config: dict[str, Any], config_path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to save to (defaults to XDG config location)

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        logger.debug("Loading config from %s", config_file)
        return load_json_config(config_file)

    return None


def config_exists() -> bool:
    """Check if any config file exists."""
    return find_config_file() is not None


def get_ledger_path(
    config: dict[str, Any] | None = None,
    override: str | None = None,
) -> Path | None:
    """Get the ledger file path, preferring an explicit override."""
    if override:
        return Path(override).expanduser()

    if config and (ledger := config.get("ledger")):
        return Path(str(ledger)).expanduser()

    return None


def get_source_url(config: dict[str, Any] | None = None, default: str = "") -> str:
    """Get the link to the ledger shown in notification messages."""
    if config and (url := config.get("source_url")):
        return str(url)
    return default


def get_rates_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get the exchange rate section, applying the API key env override.

    ``EXCHANGE_RATE_API_KEY`` takes precedence over ``rates.api_key``.
    """
    rates_config: dict[str, Any] = dict((config or {}).get("rates", {}))
    if api_key := os.getenv("EXCHANGE_RATE_API_KEY"):
        rates_config["api_key"] = api_key
    return rates_config


def get_smtp_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get the SMTP section for the email notifier."""
    if not config:
        return {}
    return dict(config.get("smtp", {}))


def get_settings(config: dict[str, Any] | None = None) -> "Settings":
    """Build a Settings accessor over the config's settings section.

    A config without a settings section yields a Settings whose store is
    absent, so reading any key raises ConfigurationError.
    """
    if not config or "settings" not in config:
        return Settings(None)
    store = config["settings"]
    if not isinstance(store, Mapping):
        raise ConfigurationError("The 'settings' section must be a JSON object")
    return Settings(store)


def create_default_config() -> dict[str, Any]:
    """Create a default configuration."""
    return {
        "ledger": "transactions.csv",
        "source_url": "",
        "settings": {
            "Base Currency": DEFAULT_BASE_CURRENCY,
            "Alert Email": "",
            "Budget Limit": int(DEFAULT_BUDGET_LIMIT),
            "Alert Threshold": "80%",
        },
        "rates": {
            "api_key": None,
            "timeout": 10,
        },
        "smtp": {
            "host": "localhost",
            "port": 587,
            "username": None,
            "password": None,
            "sender": None,
            "use_tls": True,
        },
    }


class Settings:
    """Key-value settings as kept by the ledger owner.

    Keys are matched after trimming whitespace on both sides, so
    ``" Budget Limit "`` in the store matches a lookup of ``"Budget Limit"``.
    """

    def __init__(self, store: Mapping[str, Any] | None) -> None:
        """Initialize with a settings store, or None when it does not exist."""
        self._store = store

    @property
    def available(self) -> bool:
        """Return True if a settings store exists."""
        return self._store is not None

    def get(self, key: str) -> Any:
        """Return a setting value, or None if the key is not present.

        Raises:
            ConfigurationError: If the settings store itself is absent
        """
        if self._store is None:
            raise ConfigurationError(
                "Settings not found. Add a 'settings' section to config.json "
                "or run 'fxbudget --init-config'."
            )

        trimmed_key = key.strip()
        for stored_key, value in self._store.items():
            if str(stored_key).strip() == trimmed_key:
                return value
        return None

    def get_number(self, key: str, default: Decimal | int | float = 0) -> Decimal:
        """Return a setting as a number.

        A trailing ``%`` divides by 100 ("80%" -> 0.8). Empty or
        unparsable values give the default.
        """
        fallback = to_decimal(default)
        if fallback is None:
            fallback = Decimal("0")

        raw = self.get(key)
        if raw is None or raw == "":
            return fallback

        number = to_decimal(raw)
        if number is not None:
            return number

        text = str(raw).strip()
        if text.endswith("%"):
            pct = _parse_number_prefix(text[:-1].strip())
            return fallback if pct is None else pct / 100

        parsed = _parse_number_prefix(text)
        return fallback if parsed is None else parsed

    @property
    def base_currency(self) -> str:
        """Base currency code, upper-cased (default USD)."""
        value = self.get("Base Currency")
        text = str(value).strip().upper() if value is not None else ""
        return text or DEFAULT_BASE_CURRENCY

    @property
    def budget_limit(self) -> Decimal:
        """Budget limit in base currency (default 5000)."""
        return self.get_number("Budget Limit", DEFAULT_BUDGET_LIMIT)

    @property
    def alert_threshold(self) -> Decimal:
        """Alert threshold as a fraction (default 0.8)."""
        return self.get_number("Alert Threshold", DEFAULT_ALERT_THRESHOLD)

    @property
    def alert_email(self) -> str:
        """Alert recipient; empty means alerts are disabled."""
        value = self.get("Alert Email")
        return str(value).strip() if value is not None else ""


def _parse_number_prefix(text: str) -> Decimal | None:
    """Parse the leading number of a string, ignoring any trailing text."""
    match = _NUMBER_PREFIX.match(text.strip())
    if not match:
        return None
    return to_decimal(match.group(0))
