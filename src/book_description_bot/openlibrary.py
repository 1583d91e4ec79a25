"""
Open Library API client for book-description-bot.

Descriptions live on the work record, so finding one takes two round trips:
a search to get work keys, then one lookup per work.

API Documentation: https://openlibrary.org/developers/api
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

OL_API_BASE = "https://openlibrary.org"
USER_AGENT = "NotionBookDescriptionBot/1.0"


@dataclass
class OpenLibraryWork:
    """Work-level information from Open Library."""

    key: str  # e.g., "/works/OL1W"
    description: str | None = None


@dataclass
class OpenLibrarySearchResult:
    """A single search result from Open Library."""

    key: str
    title: str
    author_name: list[str] = field(default_factory=list)


class OpenLibraryClient:
    """
    Client for the Open Library API.

    Provides free-text search and work lookup.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        max_search_results: int = 3,
    ):
        """
        Initialize the Open Library client.

        Args:
            timeout_seconds: Request timeout in seconds
            max_search_results: Maximum search results to return
        """
        self.timeout = timeout_seconds
        self.max_search_results = max_search_results
        self.headers = {"User-Agent": USER_AGENT}

    async def search(self, query: str) -> list[OpenLibrarySearchResult]:
        """
        Search for books with a free-text query (usually "title author").

        Returns:
            List of search results (up to max_search_results)
        """
        if not query:
            return []

        url = f"{OL_API_BASE}/search.json"
        params = {"q": query, "limit": self.max_search_results}

        logger.debug(f"Searching Open Library: {query}")

        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await client.get(url, params=params, follow_redirects=True)
            response.raise_for_status()
            data = response.json()
            return self._parse_search_results(data)

    async def lookup_work(self, work_key: str) -> OpenLibraryWork | None:
        """
        Look up a work by its key.

        Args:
            work_key: Work key (e.g., "/works/OL1W" or just "OL1W")

        Returns:
            OpenLibraryWork if found, None otherwise
        """
        # Normalize key
        if not work_key.startswith("/works/"):
            work_key = f"/works/{work_key}"

        url = f"{OL_API_BASE}{work_key}.json"
        logger.debug(f"Looking up work {work_key}")

        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await client.get(url, follow_redirects=True)
            if response.status_code == 404:
                logger.debug(f"Work {work_key} not found")
                return None
            response.raise_for_status()
            data = response.json()
            return self._parse_work(data)

    def _parse_work(self, data: dict[str, Any]) -> OpenLibraryWork:
        """Parse work data from API response."""
        # Description can be a string or object with "value" key
        description = data.get("description")
        if isinstance(description, dict):
            description = description.get("value")

        return OpenLibraryWork(
            key=data.get("key", ""),
            description=description or None,
        )

    def _parse_search_results(
        self, data: dict[str, Any]
    ) -> list[OpenLibrarySearchResult]:
        """Parse search results from API response."""
        results = []
        for doc in data.get("docs", [])[: self.max_search_results]:
            results.append(
                OpenLibrarySearchResult(
                    key=doc.get("key", ""),
                    title=doc.get("title", "Unknown"),
                    author_name=doc.get("author_name", []),
                )
            )
        return results
