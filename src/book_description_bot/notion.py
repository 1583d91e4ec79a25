"""
Notion API client for book-description-bot.

Reads book pages that still need a description and writes the cleaned
description back to the page.

API Documentation: https://developers.notion.com/reference
"""

import logging
from typing import Any

import httpx

from .config import MAX_BOOKS_PER_RUN, MAX_DESCRIPTION_LENGTH, NotionConfig
from .models import DESCRIPTION_PROPERTY, BookPage

logger = logging.getLogger(__name__)

FORMAT_PROPERTY = "Format"
BOOK_FORMAT = "Book"
SORT_PROPERTY = "Name"

SENTENCE_ENDINGS = (".", "!", "?")
# Only back up to a sentence end if it keeps at least this share of the limit
MIN_KEEP_RATIO = 0.7


def truncate_description(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    """
    Shorten text to at most ``limit`` characters.

    Prefers to end on a sentence boundary when one falls in the last 30% of
    the allowed window; otherwise hard-cuts at the limit.
    """
    if len(text) <= limit:
        return text

    truncated = text[:limit]
    last_sentence_end = max(truncated.rfind(p) for p in SENTENCE_ENDINGS)

    if last_sentence_end >= limit * MIN_KEEP_RATIO:
        truncated = truncated[: last_sentence_end + 1]

    return truncated


def missing_description_query(limit: int = MAX_BOOKS_PER_RUN) -> dict[str, Any]:
    """Database query body: books with an empty description, by name."""
    return {
        "filter": {
            "and": [
                {"property": FORMAT_PROPERTY, "select": {"equals": BOOK_FORMAT}},
                {"property": DESCRIPTION_PROPERTY, "rich_text": {"is_empty": True}},
            ]
        },
        "sorts": [{"property": SORT_PROPERTY, "direction": "ascending"}],
        "page_size": limit,
    }


def description_update(text: str) -> dict[str, Any]:
    """Page update body setting the description property."""
    return {
        "properties": {
            DESCRIPTION_PROPERTY: {
                "rich_text": [{"type": "text", "text": {"content": text}}],
            }
        }
    }


class NotionClient:
    """
    Client for the Notion database holding the book list.

    Errors are not caught here: reading is fatal for a run and write
    failures are reported per book by the caller.
    """

    def __init__(self, config: NotionConfig):
        self.api_base = config.api_base.rstrip("/")
        self.api_version = config.api_version
        self.token = config.get_token()
        self.database_id = config.get_database_id()
        self.timeout = config.timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": self.api_version,
            "Content-Type": "application/json",
        }

    async def query_books_missing_description(
        self, limit: int = MAX_BOOKS_PER_RUN
    ) -> list[BookPage]:
        """
        Fetch books whose description is empty.

        Args:
            limit: Maximum pages to return (single page of results)

        Returns:
            Books sorted by name

        Raises:
            httpx.HTTPError: If the request fails or Notion returns an error
        """
        url = f"{self.api_base}/v1/databases/{self.database_id}/query"
        logger.debug(f"Querying Notion database {self.database_id}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                url,
                headers=self._headers(),
                json=missing_description_query(limit),
            )
            response.raise_for_status()
            data = response.json()

        return [BookPage.from_notion(page) for page in data.get("results", [])[:limit]]

    async def update_description(self, page_id: str, description: str) -> None:
        """
        Write a description to a book page, truncating to Notion's limit.

        Raises:
            httpx.HTTPError: If the request fails or Notion returns an error
        """
        text = truncate_description(description)
        url = f"{self.api_base}/v1/pages/{page_id}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.patch(
                url,
                headers=self._headers(),
                json=description_update(text),
            )
            response.raise_for_status()

        logger.debug(f"Updated page {page_id} with {len(text)} characters")
