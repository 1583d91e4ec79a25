"""
Slack run report for book-description-bot.
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from .config import SlackConfig
from .models import BookOutcome, RunResult

logger = logging.getLogger(__name__)


def format_timestamp(moment: datetime, timezone: str) -> str:
    """e.g. "Saturday, October 17, 2026 at 9:05 AM" in the given zone."""
    local = moment.astimezone(ZoneInfo(timezone))
    hour = local.hour % 12 or 12
    return (
        f"{local:%A, %B} {local.day}, {local.year} "
        f"at {hour}:{local:%M} {local:%p}"
    )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _book_line(book: BookOutcome) -> str:
    line = f"- <{book.url}|{book.title}>"
    if book.author:
        line += f" by {book.author}"
    return line + "\n"


def build_message(
    result: RunResult,
    timezone: str = "America/Los_Angeles",
    run_log_url: str | None = None,
) -> str:
    """Slack mrkdwn summary of a run."""
    message = "*Book Description Automation Report*\n"
    message += f"{format_timestamp(result.started_at, timezone)}\n\n"

    if result.updated:
        message += f"*{_plural(len(result.updated), 'description')} added:*\n"
        for book in result.updated:
            message += _book_line(book)
        message += "\n"

    if result.skipped:
        message += f"*{_plural(len(result.skipped), 'book')} skipped:*\n"
        for book in result.skipped:
            message += _book_line(book)
            message += f"  _Reason: {book.reason}_\n"
        message += "\n"

    if not result.updated and not result.skipped:
        message += "No books needed descriptions\n"

    if run_log_url:
        message += f"\n<{run_log_url}|View full logs on GitHub>"

    return message


class SlackNotifier:
    """Posts the run report to an incoming webhook."""

    def __init__(self, config: SlackConfig, run_log_url: str | None = None):
        self.webhook_url = config.get_webhook_url()
        self.timezone = config.timezone
        self.run_log_url = run_log_url

    async def send(self, result: RunResult) -> bool:
        """
        Send the report. Never raises.

        Returns True if Slack accepted the message.
        """
        if not self.webhook_url:
            logger.info("No Slack webhook configured, skipping notification")
            return False

        payload = {"text": build_message(result, self.timezone, self.run_log_url)}

        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except Exception as e:
            logger.warning(f"Failed to send Slack notification: {e}")
            return False

        logger.info("Slack notification sent")
        return True
