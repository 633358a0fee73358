"""Tests for the command-line interface."""

import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import make_response

from fxbudget import cli
from fxbudget.ledger import CsvLedger
from fxbudget.rates import ExchangeRateProvider, FrankfurterSource, MemoryRateCache

RATES = {"rates": {"EUR": 0.925, "JPY": 150}}


@pytest.fixture
def config_file(tmp_path: Path, ledger_file: Path) -> Path:
    """Write a config pointing at the sample ledger."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "ledger": str(ledger_file),
        "source_url": "https://example.com/ledger",
        "settings": {
            "Base Currency": "USD",
            "Alert Email": "user@example.com",
            "Budget Limit": 100,
            "Alert Threshold": "80%",
        },
    }))
    return path


def fake_provider(*responses: object) -> ExchangeRateProvider:
    session = MagicMock()
    session.get.side_effect = list(responses)
    return ExchangeRateProvider(
        [FrankfurterSource("https://fallback.example/latest", session=session)],
        cache=MemoryRateCache(),
    )


class TestMain:
    """Tests for the main entry point."""

    def test_init_config(self, tmp_path: Path) -> None:
        """Test writing a default config."""
        path = tmp_path / "new" / "config.json"

        assert cli.main(["--init-config", "--config", str(path)]) == 0
        assert json.loads(path.read_text())["settings"]["Base Currency"] == "USD"

    def test_welcome_without_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test first run prints setup instructions."""
        monkeypatch.chdir(tmp_path)

        assert cli.main([]) == 0
        assert "--init-config" in capsys.readouterr().out

    def test_update_rates_and_summary(
        self, config_file: Path, ledger_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test conversion is saved and the summary printed."""
        provider = fake_provider(make_response(200, RATES))

        with patch.object(cli, "build_provider", return_value=provider):
            code = cli.main(["--config", str(config_file), "--update-rates", "--summary"])

        assert code == 0
        records = CsvLedger(ledger_file).load()
        assert records[0].amount_base == Decimal("100.00")
        assert records[1].amount_base == Decimal("10.00")
        out = capsys.readouterr().out
        assert "Food" in out
        assert "$112.00" in out
        assert "Over Budget" in out

    def test_update_rates_unavailable(self, config_file: Path, ledger_file: Path) -> None:
        """Test the ledger is untouched when rates cannot be fetched."""
        before = ledger_file.read_text()
        provider = fake_provider(make_response(500, None))

        with patch.object(cli, "build_provider", return_value=provider):
            code = cli.main(["--config", str(config_file), "--update-rates"])

        assert code == 1
        assert ledger_file.read_text() == before

    def test_check_alerts(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the alert report lists categories at the threshold."""
        assert cli.main(["--config", str(config_file), "--check-alerts"]) == 0
        assert "All categories are within budget." in capsys.readouterr().out

    def test_send_alerts(self, config_file: Path) -> None:
        """Test alerts go through the SMTP notifier."""
        provider = fake_provider(make_response(200, RATES))

        with patch.object(cli, "build_provider", return_value=provider), \
                patch.object(cli, "SmtpNotifier") as mock_notifier_class:
            mock_notifier_class.from_config.return_value.send.return_value = True
            code = cli.main(["--config", str(config_file), "--update-rates", "--send-alerts"])

        assert code == 0
        send = mock_notifier_class.from_config.return_value.send
        assert send.call_count == 1
        assert send.call_args[0][0] == "user@example.com"
        assert "https://example.com/ledger" in send.call_args[0][2]

    def test_missing_settings_section(self, tmp_path: Path, ledger_file: Path) -> None:
        """Test a config without settings fails cleanly."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"ledger": str(ledger_file)}))

        assert cli.main(["--config", str(path), "--summary"]) == 1

    def test_missing_ledger(self, config_file: Path, tmp_path: Path) -> None:
        """Test a missing ledger file fails cleanly."""
        code = cli.main(
            ["--config", str(config_file), "--ledger", str(tmp_path / "nope.csv"), "--summary"]
        )
        assert code == 1

    def test_rate(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test printing a single exchange rate."""
        provider = fake_provider(make_response(200, RATES))

        with patch.object(cli, "build_provider", return_value=provider):
            assert cli.main(["--config", str(config_file), "--rate", "usd", "eur"]) == 0

        assert capsys.readouterr().out.strip() == "0.925"


class TestFormatSummaryTable:
    """Tests for format_summary_table function."""

    def test_header_and_rows(self) -> None:
        """Test the table lists every category."""
        from conftest import make_record

        from fxbudget.budget import build_summary

        summary = build_summary([make_record("Food", "4500")], 5000, 0.8)
        lines = cli.format_summary_table(summary).splitlines()

        assert lines[0].split() == ["Category", "Total", "Budget", "Remaining", "Status"]
        assert lines[1].split() == ["Food", "$4,500.00", "$5,000.00", "$500.00", "Warning"]
