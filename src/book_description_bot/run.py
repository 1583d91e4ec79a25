"""
CLI runner for book-description-bot.

Usage:
    python -m book_description_bot.run [OPTIONS]

    # Fill in descriptions for up to 50 books and post a Slack report
    python -m book_description_bot.run

    # List the books that would be processed
    python -m book_description_bot.run --dry-run
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from .config import MAX_BOOKS_PER_RUN, BotConfig
from .models import RunResult
from .notion import NotionClient
from .pipeline import Pipeline
from .slack import SlackNotifier, format_timestamp

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("book-description-bot")


async def run_once(config: BotConfig, notify: bool = True) -> RunResult:
    """
    Process every book missing a description, up to the per-run cap.

    Raises whatever the Notion query raises; nothing is written in that case.
    """
    result = RunResult(started_at=datetime.now(UTC))
    logger.info("=== Book Description Automation Started ===")
    logger.info(format_timestamp(result.started_at, config.slack.timezone))
    logger.info(f"Max books per run: {MAX_BOOKS_PER_RUN}")

    notion = NotionClient(config.notion)
    books = await notion.query_books_missing_description(limit=MAX_BOOKS_PER_RUN)
    logger.info(f"Found {len(books)} book(s) needing descriptions")

    pipeline = Pipeline(config, notion)
    await pipeline.run(books, result)

    logger.info("=== Summary ===")
    logger.info(f"Processed: {len(books)}")
    logger.info(f"Done: {len(result.updated)}")
    logger.info(f"Skipped: {len(result.skipped)}")

    if notify:
        notifier = SlackNotifier(config.slack, run_log_url=config.run_log_url())
        await notifier.send(result)

    return result


async def dry_run(config: BotConfig) -> int:
    """List the books a run would pick up without touching them."""
    notion = NotionClient(config.notion)
    books = await notion.query_books_missing_description(limit=MAX_BOOKS_PER_RUN)
    logger.info(f"Dry run: would process {len(books)} book(s)")
    for book in books:
        byline = f" by {book.author}" if book.author else ""
        logger.info(f"  - {book.title}{byline} ({book.url})")
    return len(books)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="book-description-bot: Fill in missing book descriptions in Notion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
    NOTION_TOKEN, DATABASE_ID, ANTHROPIC_API_KEY   required
    HARDCOVER_TOKEN                                enables Hardcover search
    SLACK_WEBHOOK_URL                              enables the Slack report

Examples:
    # Process books and post a report
    python -m book_description_bot.run

    # Use a specific config file
    python -m book_description_bot.run --config bot.yaml

    # Show what would be processed
    python -m book_description_bot.run --dry-run
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("bot.yaml"),
        help="Path to config file (default: bot.yaml, optional)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List books needing descriptions without changing anything",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not post the run report to Slack",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = BotConfig.from_yaml(args.config)
    logger.info(f"Config loaded from {args.config}")
    logger.debug(f"Config: {config.to_dict()}")

    missing = config.missing_settings()
    if missing:
        logger.error(f"Missing required settings: {', '.join(missing)}")
        return 1

    try:
        if args.dry_run:
            asyncio.run(dry_run(config))
            return 0

        asyncio.run(run_once(config, notify=not args.no_notify))
    except Exception:
        logger.exception("Fatal error")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
