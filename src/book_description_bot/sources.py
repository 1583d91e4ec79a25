"""
Description providers for book-description-bot.

Each provider turns a book into zero or more candidate descriptions. The
aggregator asks the API providers in order and only falls back to scraping
Goodreads when none of them found anything.
"""

import asyncio
import html
import json
import logging
import re
from abc import ABC, abstractmethod

import httpx

from .config import BotConfig
from .models import BookPage, Candidate, Provenance
from .openlibrary import OpenLibraryClient

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
GOODREADS_BASE = "https://www.goodreads.com"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
)

# Courtesy delays (seconds)
OPEN_LIBRARY_INITIAL_DELAY = 1.0
OPEN_LIBRARY_WORK_DELAY = 0.5
GOODREADS_PAGE_DELAY = 1.0

MIN_SCRAPED_LENGTH = 20

BOOK_LINK_RE = re.compile(r"/book/show/\d+[^\"'\s]*")
DESCRIPTION_RE = re.compile(
    r'data-testid="description"[\s\S]*?<span class="Formatted">([\s\S]*?)</span>'
)
PAGE_TITLE_RE = re.compile(r"<title>([^<]*)</title>")
BR_RE = re.compile(r"<br\s*/?>")
TAG_RE = re.compile(r"<[^>]*>")
EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


class DescriptionSource(ABC):
    """Base class for description providers."""

    name: str = "base"
    provenance: Provenance

    def is_enabled(self) -> bool:
        """Check if this provider should be queried."""
        return True

    @abstractmethod
    async def search(self, book: BookPage) -> list[Candidate]:
        """Find candidate descriptions for a book. May raise."""
        pass

    async def fetch(self, book: BookPage) -> list[Candidate]:
        """Run search, treating any failure as no results."""
        try:
            return await self.search(book)
        except Exception as e:
            logger.warning(f"{self.name} search failed for {book.title!r}: {e}")
            return []


class GoogleBooksSource(DescriptionSource):
    """Google Books volume search. No key required."""

    name = "google_books"
    provenance = Provenance.GOOGLE_BOOKS

    def __init__(self, timeout_seconds: float = 15.0, max_results: int = 5):
        self.timeout = timeout_seconds
        self.max_results = max_results

    async def search(self, book: BookPage) -> list[Candidate]:
        params = {"q": book.search_query, "maxResults": self.max_results}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(GOOGLE_BOOKS_URL, params=params)
            response.raise_for_status()
            data = response.json()

        candidates = []
        for item in data.get("items") or []:
            volume = item.get("volumeInfo") or {}
            if not volume.get("description"):
                continue
            candidates.append(
                Candidate(
                    title=volume.get("title") or "Unknown",
                    authors=volume.get("authors") or [],
                    description=volume["description"],
                    source=self.provenance,
                )
            )
        return candidates


class OpenLibrarySource(DescriptionSource):
    """Open Library search followed by one work lookup per result."""

    name = "open_library"
    provenance = Provenance.OPEN_LIBRARY

    def __init__(self, client: OpenLibraryClient | None = None):
        self.client = client or OpenLibraryClient()

    async def search(self, book: BookPage) -> list[Candidate]:
        await asyncio.sleep(OPEN_LIBRARY_INITIAL_DELAY)

        results = await self.client.search(book.search_query)

        candidates = []
        for result in results:
            if not result.key:
                continue

            await asyncio.sleep(OPEN_LIBRARY_WORK_DELAY)

            try:
                work = await self.client.lookup_work(result.key)
            except Exception as e:
                logger.warning(f"Open Library work fetch failed for {result.key}: {e}")
                continue

            if work and work.description:
                candidates.append(
                    Candidate(
                        title=result.title or "Unknown",
                        authors=result.author_name,
                        description=work.description,
                        source=self.provenance,
                    )
                )
        return candidates


class HardcoverSource(DescriptionSource):
    """Hardcover GraphQL search. Only runs when a token is configured."""

    name = "hardcover"
    provenance = Provenance.HARDCOVER

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.hardcover.app/v1/graphql",
        timeout_seconds: float = 15.0,
        per_page: int = 3,
    ):
        self.token = token
        self.api_url = api_url
        self.timeout = timeout_seconds
        self.per_page = per_page

    def is_enabled(self) -> bool:
        return bool(self.token)

    def build_query(self, query: str) -> str:
        # json.dumps gives a valid GraphQL string literal
        return (
            f"{{ search(query: {json.dumps(query)}, query_type: \"books\", "
            f"per_page: {self.per_page}) {{ results }} }}"
        )

    async def search(self, book: BookPage) -> list[Candidate]:
        if not self.token:
            return []

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.token}"},
                json={"query": self.build_query(book.search_query)},
            )
            response.raise_for_status()
            data = response.json()

        results = ((data.get("data") or {}).get("search") or {}).get("results") or {}
        candidates = []
        for hit in results.get("hits") or []:
            document = hit.get("document") or {}
            if not document.get("description"):
                continue
            candidates.append(
                Candidate(
                    title=document.get("title") or "Unknown",
                    authors=document.get("author_names") or [],
                    description=document["description"],
                    source=self.provenance,
                )
            )
        return candidates


def extract_goodreads_description(page_html: str) -> str | None:
    """Pull the blurb out of a Goodreads book page, as plain text."""
    match = DESCRIPTION_RE.search(page_html)
    if not match:
        return None

    text = BR_RE.sub("\n", match.group(1))
    text = TAG_RE.sub("", text)
    text = EXTRA_NEWLINES_RE.sub("\n\n", text).strip()
    text = html.unescape(text).replace("\xa0", " ")

    if len(text) < MIN_SCRAPED_LENGTH:
        return None
    return text


def extract_goodreads_title(page_html: str) -> str:
    match = PAGE_TITLE_RE.search(page_html)
    if not match:
        return "Unknown"
    return re.sub(r" by .*", "", html.unescape(match.group(1))).strip() or "Unknown"


class GoodreadsSource(DescriptionSource):
    """
    Last-resort scrape of Goodreads search and book pages.

    Depends on the current page markup; anything unexpected yields no
    candidates rather than an error.
    """

    name = "goodreads"
    provenance = Provenance.GOODREADS

    def __init__(self, timeout_seconds: float = 15.0):
        self.timeout = timeout_seconds
        self.headers = {"User-Agent": BROWSER_USER_AGENT}

    async def search(self, book: BookPage) -> list[Candidate]:
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, follow_redirects=True
        ) as client:
            response = await client.get(
                f"{GOODREADS_BASE}/search", params={"q": book.search_query}
            )
            response.raise_for_status()

            link = BOOK_LINK_RE.search(response.text)
            if not link:
                logger.debug(f"No Goodreads result for {book.search_query!r}")
                return []

            await asyncio.sleep(GOODREADS_PAGE_DELAY)

            response = await client.get(f"{GOODREADS_BASE}{html.unescape(link.group(0))}")
            response.raise_for_status()
            page_html = response.text

        description = extract_goodreads_description(page_html)
        if not description:
            return []

        return [
            Candidate(
                title=extract_goodreads_title(page_html),
                authors=[book.author] if book.author else [],
                description=description,
                source=self.provenance,
            )
        ]


class DescriptionAggregator:
    """
    Collects candidates from every enabled provider, one after another.

    Fallback providers only run when the primary ones found nothing.
    """

    def __init__(
        self,
        primary: list[DescriptionSource],
        fallback: list[DescriptionSource] | None = None,
    ):
        self.primary = primary
        self.fallback = fallback or []

    @classmethod
    def from_config(cls, config: BotConfig) -> "DescriptionAggregator":
        timeout = config.providers.timeout_seconds
        primary: list[DescriptionSource] = []
        if config.providers.google_books:
            primary.append(GoogleBooksSource(timeout_seconds=timeout))
        if config.providers.open_library:
            primary.append(OpenLibrarySource(OpenLibraryClient(timeout_seconds=timeout)))
        if config.providers.hardcover:
            primary.append(
                HardcoverSource(
                    token=config.hardcover.get_token(),
                    api_url=config.hardcover.api_url,
                    timeout_seconds=timeout,
                )
            )

        fallback: list[DescriptionSource] = []
        if config.providers.goodreads:
            fallback.append(GoodreadsSource(timeout_seconds=timeout))

        return cls(primary, fallback)

    async def _run(
        self, sources: list[DescriptionSource], book: BookPage
    ) -> list[Candidate]:
        candidates: list[Candidate] = []
        for source in sources:
            if not source.is_enabled():
                logger.debug(f"Skipping disabled source: {source.name}")
                continue
            found = await source.fetch(book)
            logger.debug(f"{source.name}: {len(found)} description(s)")
            candidates.extend(found)
        return candidates

    async def gather(self, book: BookPage) -> list[Candidate]:
        """All candidate descriptions for a book, in provider order."""
        candidates = await self._run(self.primary, book)

        if not candidates and self.fallback:
            logger.info("  No API results, trying fallback sources...")
            candidates = await self._run(self.fallback, book)

        return candidates
