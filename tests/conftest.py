"""Shared pytest fixtures for book-description-bot tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import HTTPStatusError

from book_description_bot.config import BotConfig
from book_description_bot.models import BookPage, Candidate, Provenance


@pytest.fixture
def config():
    """Config with every secret set directly (no environment needed)."""
    config = BotConfig()
    config.notion.token = "secret_notion"
    config.notion.database_id = "db123"
    config.llm.api_key = "sk-test"
    config.slack.webhook_url = "https://hooks.slack.example/T000/B000/XXX"
    return config


@pytest.fixture
def book():
    """A book page with title and author."""
    return BookPage(
        page_id="1234abcd-0000-1111-2222-333344445555",
        title="Dune",
        author="Frank Herbert",
    )


@pytest.fixture
def make_candidate():
    """Build a Candidate with sensible defaults."""

    def _make(
        description: str = "A stunning blend of adventure and mysticism.",
        source: Provenance = Provenance.GOOGLE_BOOKS,
        title: str = "Dune",
    ) -> Candidate:
        return Candidate(
            title=title,
            authors=["Frank Herbert"],
            description=description,
            source=source,
        )

    return _make


@pytest.fixture
def mock_response():
    """Create a mock httpx response."""

    def _make_response(json_data=None, status_code=200, text=""):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data
        response.text = text
        response.raise_for_status = MagicMock()
        if status_code >= 400:
            response.raise_for_status.side_effect = HTTPStatusError(
                f"Error {status_code}", request=MagicMock(), response=response
            )
        return response

    return _make_response


@pytest.fixture
def http_client():
    """Patch httpx.AsyncClient; yields the client used inside ``async with``."""
    with patch("httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.__aexit__.return_value = None
        MockClient.return_value = mock_client
        mock_client.factory = MockClient
        yield mock_client


@pytest.fixture
def no_sleep():
    """Skip courtesy delays; the mock records what would have been slept."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep
