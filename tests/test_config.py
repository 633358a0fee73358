"""Tests for configuration management."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from fxbudget.config import (
    ConfigurationError,
    Settings,
    config_exists,
    create_default_config,
    find_config_file,
    get_cache_path,
    get_ledger_path,
    get_rates_config,
    get_settings,
    get_source_url,
    load_config,
    save_json_config,
)


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_finds_config_in_current_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test finding config.json in current directory."""
        monkeypatch.chdir(tmp_path)
        config_file = tmp_path / "config.json"
        config_file.write_text('{"settings": {}}')

        result = find_config_file()

        assert result is not None
        assert result.resolve() == config_file.resolve()

    def test_finds_config_in_xdg_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test finding config in XDG config directory."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "xdg_config" / "fxbudget"
        config_dir.mkdir(parents=True)
        config_file = config_dir / "config.json"
        config_file.write_text('{"settings": {}}')

        assert find_config_file() == config_file

    def test_current_dir_takes_precedence(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test current directory config takes precedence over XDG."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "xdg_config" / "fxbudget"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_text("{}")
        cwd_config = tmp_path / "config.json"
        cwd_config.write_text("{}")

        result = find_config_file()

        assert result is not None
        assert result.resolve() == cwd_config.resolve()

    def test_returns_none_when_no_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test returns None when no config file exists."""
        monkeypatch.chdir(tmp_path)

        assert find_config_file() is None
        assert config_exists() is False


class TestLoadAndSaveConfig:
    """Tests for load_config and save_json_config."""

    def test_loads_explicit_path(self, tmp_path: Path) -> None:
        """Test loading from explicit path."""
        config_file = tmp_path / "config.json"
        config_data = {"ledger": "tx.csv", "settings": {"Base Currency": "EUR"}}
        config_file.write_text(json.dumps(config_data))

        assert load_config(config_file) == config_data

    def test_returns_none_when_no_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test returns None when no config exists."""
        monkeypatch.chdir(tmp_path)
        assert load_config() is None

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        """Test that broken JSON is a configuration error."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(config_file)

    def test_missing_explicit_path_raises(self, tmp_path: Path) -> None:
        """Test that an explicit but missing path is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_non_object_raises(self, tmp_path: Path) -> None:
        """Test that a JSON list is rejected."""
        config_file = tmp_path / "config.json"
        config_file.write_text("[1, 2]")

        with pytest.raises(ConfigurationError):
            load_config(config_file)

    def test_save_creates_parent_dirs(self, tmp_path: Path) -> None:
        """Test saving to a nested path."""
        config_file = tmp_path / "nested" / "dir" / "config.json"

        result = save_json_config({"ledger": "tx.csv"}, config_file)

        assert result == config_file
        assert json.loads(config_file.read_text()) == {"ledger": "tx.csv"}

    def test_save_defaults_to_xdg(self, tmp_path: Path) -> None:
        """Test saving without a path uses the XDG location."""
        result = save_json_config(create_default_config())

        assert result == tmp_path / "xdg_config" / "fxbudget" / "config.json"
        assert result.exists()


class TestConfigGetters:
    """Tests for config section accessors."""

    def test_ledger_path_override(self) -> None:
        """Test that an explicit ledger wins over config."""
        config = {"ledger": "from_config.csv"}
        assert get_ledger_path(config, "cli.csv") == Path("cli.csv")
        assert get_ledger_path(config) == Path("from_config.csv")
        assert get_ledger_path(None) is None

    def test_source_url(self) -> None:
        """Test the ledger link with a default."""
        assert get_source_url({"source_url": "https://example.com/x"}) == "https://example.com/x"
        assert get_source_url({}, default="/tmp/tx.csv") == "/tmp/tx.csv"

    def test_rates_api_key_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test EXCHANGE_RATE_API_KEY overrides the config value."""
        config = {"rates": {"api_key": "from-config", "timeout": 5}}
        assert get_rates_config(config)["api_key"] == "from-config"

        monkeypatch.setenv("EXCHANGE_RATE_API_KEY", "from-env")
        rates_config = get_rates_config(config)

        assert rates_config["api_key"] == "from-env"
        assert rates_config["timeout"] == 5
        assert config["rates"]["api_key"] == "from-config"

    def test_cache_path_is_xdg(self, tmp_path: Path) -> None:
        """Test the rate cache lives under XDG_CACHE_HOME."""
        assert get_cache_path() == tmp_path / "xdg_cache" / "fxbudget" / "rates.json"

    def test_default_config_has_settings(self) -> None:
        """Test the default config carries every recognized setting."""
        settings = get_settings(create_default_config())

        assert settings.base_currency == "USD"
        assert settings.budget_limit == Decimal("5000")
        assert settings.alert_threshold == Decimal("0.8")
        assert settings.alert_email == ""


class TestSettings:
    """Tests for the Settings accessor."""

    def test_get_trims_keys(self) -> None:
        """Test that stored and looked-up keys are trimmed."""
        settings = Settings({"  Base Currency ": "EUR"})
        assert settings.get(" Base Currency") == "EUR"

    def test_missing_key_returns_none(self) -> None:
        """Test that an unknown key is None, not an error."""
        assert Settings({}).get("Alert Email") is None

    def test_missing_store_raises(self) -> None:
        """Test that a missing settings store is a configuration error."""
        settings = Settings(None)

        assert settings.available is False
        with pytest.raises(ConfigurationError, match="Settings not found"):
            settings.get("Base Currency")

    def test_config_without_settings_section(self) -> None:
        """Test get_settings on a config lacking the section."""
        with pytest.raises(ConfigurationError):
            get_settings({"ledger": "tx.csv"}).get("Budget Limit")

    def test_settings_section_must_be_object(self) -> None:
        """Test that a non-object settings section is rejected."""
        with pytest.raises(ConfigurationError):
            get_settings({"settings": ["Base Currency", "USD"]})

    def test_get_number_percent_string(self) -> None:
        """Test "80%" parses to 0.8."""
        settings = Settings({"Alert Threshold": "80%", "Spaced": " 12.5 % "})
        assert settings.get_number("Alert Threshold") == Decimal("0.8")
        assert settings.get_number("Spaced") == Decimal("0.125")

    def test_get_number_plain_values(self) -> None:
        """Test numbers and numeric strings."""
        settings = Settings({"A": 5000, "B": "0.75", "C": 0.9, "D": "300 USD"})
        assert settings.get_number("A") == Decimal("5000")
        assert settings.get_number("B") == Decimal("0.75")
        assert settings.get_number("C") == Decimal("0.9")
        assert settings.get_number("D") == Decimal("300")

    def test_get_number_defaults(self) -> None:
        """Test empty, missing and unparsable values fall back to default."""
        settings = Settings({"Empty": "", "Bad": "lots", "BadPct": "x%"})
        assert settings.get_number("Empty", 7) == Decimal("7")
        assert settings.get_number("Missing", 0.8) == Decimal("0.8")
        assert settings.get_number("Bad", 3) == Decimal("3")
        assert settings.get_number("BadPct", 1) == Decimal("1")
        assert settings.get_number("Missing") == Decimal("0")

    def test_typed_accessors(self) -> None:
        """Test base currency normalization and defaults."""
        settings = Settings({"Base Currency": " eur ", "Alert Email": " me@example.com "})
        assert settings.base_currency == "EUR"
        assert settings.alert_email == "me@example.com"
        assert settings.budget_limit == Decimal("5000")
        assert settings.alert_threshold == Decimal("0.8")

    def test_blank_base_currency_defaults_to_usd(self) -> None:
        """Test a blank base currency falls back to USD."""
        assert Settings({"Base Currency": ""}).base_currency == "USD"
