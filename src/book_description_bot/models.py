"""
Data models for book-description-bot.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

NOTION_PAGE_URL = "https://notion.so"

# Title column has been renamed over time; first match wins
TITLE_PROPERTIES = ("Media", "Title", "Name")
AUTHOR_PROPERTY = "Source"
DESCRIPTION_PROPERTY = "Book Description"


class Provenance(str, Enum):
    """Which provider produced a candidate description."""

    GOOGLE_BOOKS = "Google Books"
    OPEN_LIBRARY = "Open Library"
    HARDCOVER = "Hardcover"
    GOODREADS = "Goodreads"


def _plain_text(prop: dict | None, kind: str) -> str | None:
    """First plain_text fragment of a title/rich_text property."""
    if not prop:
        return None
    fragments = prop.get(kind) or []
    if not fragments:
        return None
    return fragments[0].get("plain_text") or None


@dataclass
class BookPage:
    """A Notion page representing one book."""

    page_id: str
    title: str
    author: str = ""
    description: str | None = None

    @property
    def url(self) -> str:
        """Shareable link to the page."""
        return f"{NOTION_PAGE_URL}/{self.page_id.replace('-', '')}"

    @property
    def search_query(self) -> str:
        """Free-text query used against the description providers."""
        return f"{self.title} {self.author}" if self.author else self.title

    @classmethod
    def from_notion(cls, page: dict[str, Any]) -> "BookPage":
        """Build from a page object returned by the Notion API."""
        properties = page.get("properties", {})

        title_prop = next(
            (properties[name] for name in TITLE_PROPERTIES if name in properties),
            None,
        )
        description = None
        desc_prop = properties.get(DESCRIPTION_PROPERTY)
        if desc_prop:
            description = "".join(
                fragment.get("plain_text", "")
                for fragment in desc_prop.get("rich_text", [])
            ) or None

        return cls(
            page_id=page["id"],
            title=_plain_text(title_prop, "title") or "Unknown",
            author=_plain_text(properties.get(AUTHOR_PROPERTY), "rich_text") or "",
            description=description,
        )


@dataclass
class Candidate:
    """One description found for a book by a single provider."""

    title: str
    description: str
    source: Provenance
    authors: list[str] = field(default_factory=list)


@dataclass
class BookOutcome:
    """What happened to one book during a run."""

    title: str
    url: str
    author: str = ""
    reason: str | None = None

    @classmethod
    def for_book(cls, book: BookPage, reason: str | None = None) -> "BookOutcome":
        return cls(title=book.title, url=book.url, author=book.author, reason=reason)


@dataclass
class RunResult:
    """Books updated and skipped during a single run."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated: list[BookOutcome] = field(default_factory=list)
    skipped: list[BookOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.skipped)

    def add_updated(self, book: BookPage) -> None:
        self.updated.append(BookOutcome.for_book(book))

    def add_skipped(self, book: BookPage, reason: str) -> None:
        self.skipped.append(BookOutcome.for_book(book, reason))
