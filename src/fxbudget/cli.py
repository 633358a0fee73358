#!/usr/bin/env python3
"""Command-line interface for fxbudget."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from fxbudget.alerts import SmtpNotifier, dispatch_over_budget_alerts, dispatch_weekly_summary
from fxbudget.budget import BudgetTracker, format_alerts_report
from fxbudget.config import (
    ConfigurationError,
    Settings,
    config_exists,
    create_default_config,
    get_cache_path,
    get_ledger_path,
    get_rates_config,
    get_settings,
    get_smtp_config,
    get_source_url,
    load_config,
    save_json_config,
)
from fxbudget.ledger import CsvLedger
from fxbudget.models import BudgetSummaryEntry
from fxbudget.rates import ExchangeRateProvider, FileRateCache, update_all_conversions
from fxbudget.utils.formatting import format_currency

SUMMARY_HEADERS = ["Category", "Total", "Budget", "Remaining", "Status"]


def format_summary_table(summary: list[BudgetSummaryEntry]) -> str:
    """Render the budget summary as an aligned text table."""
    rows = [SUMMARY_HEADERS] + [
        [
            entry.category,
            format_currency(entry.total),
            format_currency(entry.budget),
            format_currency(entry.remaining),
            entry.status.label,
        ]
        for entry in summary
    ]
    widths = [max(len(row[i]) for row in rows) for i in range(len(SUMMARY_HEADERS))]

    lines = []
    for row in rows:
        cells = [
            row[0].ljust(widths[0]),
            *(cell.rjust(width) for cell, width in zip(row[1:4], widths[1:4])),
            row[4].ljust(widths[4]),
        ]
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines)


def build_provider(config: dict[str, Any] | None) -> ExchangeRateProvider:
    """Create the rate provider with the on-disk cache."""
    return ExchangeRateProvider.from_config(
        get_rates_config(config),
        cache=FileRateCache(get_cache_path()),
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Convert ledger amounts to a base currency and track category budgets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fxbudget --init-config
  fxbudget --update-rates --summary
  fxbudget --check-alerts
  fxbudget --send-alerts
  fxbudget --weekly-summary
  fxbudget --rate EUR USD
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to config.json (default: ./config.json or ~/.config/fxbudget/)",
    )
    parser.add_argument(
        "-l",
        "--ledger",
        help="Ledger CSV file (overrides 'ledger' in config)",
    )
    parser.add_argument(
        "--update-rates",
        action="store_true",
        help="Convert local amounts to the base currency and save the ledger",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print budget status per category",
    )
    parser.add_argument(
        "--check-alerts",
        action="store_true",
        help="Print categories at or above the alert threshold",
    )
    parser.add_argument(
        "--send-alerts",
        action="store_true",
        help="Email an alert for each category at or above the threshold",
    )
    parser.add_argument(
        "--weekly-summary",
        action="store_true",
        help="Email the weekly budget summary",
    )
    parser.add_argument(
        "--rate",
        nargs=2,
        metavar=("FROM", "TO"),
        help="Print the exchange rate between two currencies",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Handle init before loading config
    if args.init_config:
        path = save_json_config(create_default_config(), args.config)
        print(f"Configuration saved to {path}", file=sys.stderr)
        return 0

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.show_config:
        if config:
            print(json.dumps(config, indent=2))
        else:
            print("No configuration found.")
            print("Run 'fxbudget --init-config' to create one.")
        return 0

    if args.rate:
        provider = build_provider(config)
        rate = provider.get_exchange_rate(args.rate[0], args.rate[1])
        if rate is None:
            print("Error: exchange rate unavailable", file=sys.stderr)
            return 1
        print(rate)
        return 0

    actions = [args.update_rates, args.summary, args.check_alerts,
               args.send_alerts, args.weekly_summary]
    if not any(actions):
        if not config_exists() and args.config is None:
            print("Welcome to fxbudget!")
            print("\nNo configuration found. To set up, run:")
            print("  fxbudget --init-config")
            return 0
        parser.print_help()
        return 1

    ledger_path = get_ledger_path(config, args.ledger)
    if ledger_path is None:
        print("Error: no ledger configured. Use --ledger or set 'ledger' in config.json",
              file=sys.stderr)
        return 1

    ledger = CsvLedger(ledger_path)
    source_url = get_source_url(config, default=str(ledger_path.resolve()))

    try:
        settings = get_settings(config)
        return _run_actions(args, config, ledger, settings, source_url)
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _run_actions(
    args: argparse.Namespace,
    config: dict[str, Any] | None,
    ledger: CsvLedger,
    settings: Settings,
    source_url: str,
) -> int:
    """Run the requested ledger actions in order."""
    exit_code = 0

    if args.update_rates:
        result = update_all_conversions(ledger, settings, build_provider(config))
        if not result.rates_available:
            print("Error: exchange rates unavailable, ledger not changed", file=sys.stderr)
            exit_code = 1
        else:
            print(f"Updated {result.updated} transactions", file=sys.stderr)
            if result.skipped:
                print(f"Skipped {result.skipped} transactions", file=sys.stderr)
            for row, currency in result.unknown_currencies:
                print(f"  Row {row}: no rate for {currency}", file=sys.stderr)

    tracker = BudgetTracker(ledger, settings)

    if args.summary:
        summary = tracker.summary()
        if summary:
            print(format_summary_table(summary))
        else:
            print("No categories to display.")

    if args.check_alerts:
        print(format_alerts_report(tracker.alerts()))

    if args.send_alerts or args.weekly_summary:
        notifier = SmtpNotifier.from_config(get_smtp_config(config))
        recipient = settings.alert_email
        if not recipient:
            print("Warning: Alert Email not configured in settings", file=sys.stderr)

        if args.send_alerts:
            sent = dispatch_over_budget_alerts(
                tracker.summary(),
                settings.alert_threshold,
                recipient,
                notifier.send,
                source_url,
            )
            print(f"Sent {sent.sent} budget alert(s)", file=sys.stderr)
            if sent.errors:
                print(f"  Errors: {len(sent.errors)}", file=sys.stderr)
                for error in sent.errors:
                    print(f"    - {error}", file=sys.stderr)
                exit_code = 1

        if args.weekly_summary and recipient:
            if dispatch_weekly_summary(tracker.summary(), recipient, notifier.send, source_url):
                print("Weekly summary sent", file=sys.stderr)
            else:
                print("Error: weekly summary could not be sent", file=sys.stderr)
                exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
