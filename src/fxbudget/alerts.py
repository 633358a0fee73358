"""Budget alert and weekly summary notifications."""

import logging
import smtplib
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from email.message import EmailMessage
from typing import Any

from fxbudget.budget import select_over_threshold
from fxbudget.models import AlertEntry, BudgetSummaryEntry, DispatchResult
from fxbudget.utils.formatting import format_currency, format_percent

logger = logging.getLogger(__name__)

SIGNATURE = "-- Budget Tracker Automation"
WEEKLY_SUBJECT = "Weekly Budget Summary"

# send(to, subject, body) -> True on success
SendFn = Callable[[str, str, str], bool]


@dataclass(frozen=True)
class Message:
    """An outbound notification."""

    subject: str
    body: str


def _percent_text(percent: Decimal) -> str:
    """87.0 -> "87%", 87.5 -> "87.5%"."""
    return format_percent(percent / 100)


def compose_over_budget_alert(entry: AlertEntry, source_url: str = "") -> Message:
    """Build the alert message for one category at or over its threshold."""
    percent = _percent_text(entry.percent)
    subject = f'Budget Alert: Category "{entry.category}" at {percent}'
    body = (
        "Hi,\n\n"
        f'Your spending in "{entry.category}" has reached {percent} of the budget limit.\n\n'
        f"  Spent:     {format_currency(entry.total)}\n"
        f"  Budget:    {format_currency(entry.budget)}\n"
        f"  Remaining: {format_currency(entry.remaining)}\n\n"
        f"Review your budget: {source_url}\n\n"
        f"{SIGNATURE}"
    )
    return Message(subject=subject, body=body)


def compose_weekly_summary(
    summary: Iterable[BudgetSummaryEntry],
    source_url: str = "",
) -> Message:
    """Build the weekly summary message, one line per category."""
    lines = [WEEKLY_SUBJECT, "=" * 20, ""]

    entries = list(summary)
    if not entries:
        lines.append("No transactions recorded this period.")
    for entry in entries:
        lines.append(
            f"{entry.category}: {format_currency(entry.total)} / "
            f"{format_currency(entry.budget)} ({entry.status.label})"
        )

    lines.extend(["", f"View spreadsheet: {source_url}", "", SIGNATURE])
    return Message(subject=WEEKLY_SUBJECT, body="\n".join(lines))


def _deliver(send: SendFn, recipient: str, message: Message) -> tuple[bool, str | None]:
    """Send one message, turning channel exceptions into a failure."""
    try:
        ok = bool(send(recipient, message.subject, message.body))
    except Exception as e:  # noqa: BLE001
        logger.error("Failed to send %r: %s", message.subject, e)
        return False, f"{message.subject}: {e}"

    if not ok:
        logger.error("Notification channel rejected %r", message.subject)
        return False, f"{message.subject}: rejected by channel"

    logger.info("Alert sent to %s: %s", recipient, message.subject)
    return True, None


def dispatch_over_budget_alerts(
    summary: Iterable[BudgetSummaryEntry],
    threshold: Decimal | float,
    recipient: str,
    send: SendFn,
    source_url: str = "",
) -> DispatchResult:
    """
    Send one alert per category at or above the threshold.

    Nothing is sent when the recipient is empty. A failed send is logged
    and the remaining alerts are still sent.

    Returns:
        DispatchResult counting successful and failed sends
    """
    result = DispatchResult()
    if not recipient or not recipient.strip():
        logger.info("Alert Email not configured in settings, no alerts sent")
        return result

    alerts = select_over_threshold(summary, threshold)
    if not alerts:
        logger.info("No budget alerts to send")
        return result

    for alert in alerts:
        ok, error = _deliver(send, recipient.strip(), compose_over_budget_alert(alert, source_url))
        if ok:
            result.sent += 1
        else:
            result.failed += 1
            if error:
                result.errors.append(error)

    logger.info("Sent %d budget alert(s)", result.sent)
    return result


def dispatch_weekly_summary(
    summary: Iterable[BudgetSummaryEntry],
    recipient: str,
    send: SendFn,
    source_url: str = "",
) -> bool:
    """
    Send the weekly summary, even when there are no categories.

    Returns:
        True if the channel reported success, False otherwise or when no
        recipient is configured
    """
    if not recipient or not recipient.strip():
        logger.info("Alert Email not configured in settings, weekly summary not sent")
        return False

    ok, _ = _deliver(send, recipient.strip(), compose_weekly_summary(summary, source_url))
    return ok


class SmtpNotifier:
    """
    Email notification channel over SMTP.

    Usage:
        notifier = SmtpNotifier.from_config(get_smtp_config(config))
        notifier.send("me@example.com", "Subject", "Body")
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 587,
        sender: str | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender or username or "fxbudget@localhost"
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, smtp_config: dict[str, Any]) -> "SmtpNotifier":
        """Build a notifier from the ``smtp`` config section."""
        return cls(
            host=smtp_config.get("host") or "localhost",
            port=int(smtp_config.get("port") or 587),
            sender=smtp_config.get("sender"),
            username=smtp_config.get("username"),
            password=smtp_config.get("password"),
            use_tls=bool(smtp_config.get("use_tls", True)),
        )

    def send(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns False instead of raising on failure."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", to, e)
            return False

        return True
