"""
Configuration for book-description-bot.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

MAX_BOOKS_PER_RUN = 50
MAX_DESCRIPTION_LENGTH = 2000  # Notion rich_text limit per block


def _from_env(value: str | None, env_name: str | None) -> str | None:
    """Return a direct value, falling back to an environment variable."""
    if value:
        return value
    if env_name:
        return os.environ.get(env_name) or None
    return None


@dataclass
class NotionConfig:
    """Notion database connection configuration."""

    api_base: str = "https://api.notion.com"
    api_version: str = "2022-06-28"
    token: str | None = None
    token_env: str | None = "NOTION_TOKEN"
    database_id: str | None = None
    database_id_env: str | None = "DATABASE_ID"
    timeout_seconds: float = 30.0

    def get_token(self) -> str | None:
        """Get integration token from config or environment."""
        return _from_env(self.token, self.token_env)

    def get_database_id(self) -> str | None:
        """Get database ID from config or environment."""
        return _from_env(self.database_id, self.database_id_env)


@dataclass
class LLMConfig:
    """Anthropic Messages API configuration."""

    model: str = "claude-3-haiku-20240307"
    api_base: str = "https://api.anthropic.com"
    api_key: str | None = None
    api_key_env: str | None = "ANTHROPIC_API_KEY"
    timeout_seconds: float = 60.0

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return _from_env(self.api_key, self.api_key_env)


@dataclass
class HardcoverConfig:
    """Hardcover GraphQL API configuration."""

    api_url: str = "https://api.hardcover.app/v1/graphql"
    token: str | None = None
    token_env: str | None = "HARDCOVER_TOKEN"

    def get_token(self) -> str | None:
        """Get bearer token from config or environment."""
        return _from_env(self.token, self.token_env)


@dataclass
class SlackConfig:
    """Slack run report configuration."""

    webhook_url: str | None = None
    webhook_url_env: str | None = "SLACK_WEBHOOK_URL"
    timezone: str = "America/Los_Angeles"

    def get_webhook_url(self) -> str | None:
        """Get incoming webhook URL from config or environment."""
        return _from_env(self.webhook_url, self.webhook_url_env)


@dataclass
class ProvidersConfig:
    """Enable/disable individual description providers."""

    google_books: bool = True
    open_library: bool = True
    hardcover: bool = True  # Still needs a token to run
    goodreads: bool = True  # Scraping fallback
    timeout_seconds: float = 15.0


@dataclass
class BotConfig:
    """Complete book-description-bot configuration."""

    notion: NotionConfig = field(default_factory=NotionConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    hardcover: HardcoverConfig = field(default_factory=HardcoverConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BotConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "notion" in data:
            notion = data["notion"]
            config.notion = NotionConfig(
                api_base=notion.get("api_base", config.notion.api_base),
                api_version=notion.get("api_version", config.notion.api_version),
                token=notion.get("token"),
                token_env=notion.get("token_env", "NOTION_TOKEN"),
                database_id=notion.get("database_id"),
                database_id_env=notion.get("database_id_env", "DATABASE_ID"),
                timeout_seconds=notion.get("timeout_seconds", 30.0),
            )

        if "llm" in data:
            llm = data["llm"]
            config.llm = LLMConfig(
                model=llm.get("model", config.llm.model),
                api_base=llm.get("api_base", config.llm.api_base),
                api_key=llm.get("api_key"),
                api_key_env=llm.get("api_key_env", "ANTHROPIC_API_KEY"),
                timeout_seconds=llm.get("timeout_seconds", 60.0),
            )

        if "hardcover" in data:
            hc = data["hardcover"]
            config.hardcover = HardcoverConfig(
                api_url=hc.get("api_url", config.hardcover.api_url),
                token=hc.get("token"),
                token_env=hc.get("token_env", "HARDCOVER_TOKEN"),
            )

        if "slack" in data:
            slack = data["slack"]
            config.slack = SlackConfig(
                webhook_url=slack.get("webhook_url"),
                webhook_url_env=slack.get("webhook_url_env", "SLACK_WEBHOOK_URL"),
                timezone=slack.get("timezone", config.slack.timezone),
            )

        if "providers" in data:
            providers = data["providers"]
            config.providers = ProvidersConfig(
                google_books=providers.get("google_books", True),
                open_library=providers.get("open_library", True),
                hardcover=providers.get("hardcover", True),
                goodreads=providers.get("goodreads", True),
                timeout_seconds=providers.get("timeout_seconds", 15.0),
            )

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "BotConfig":
        """Load config from a YAML file, using the top-level ``bot`` section."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("bot", {}) or {})

    def missing_settings(self) -> list[str]:
        """Names of required settings that could not be resolved."""
        missing = []
        if not self.notion.get_token():
            missing.append(self.notion.token_env or "notion.token")
        if not self.notion.get_database_id():
            missing.append(self.notion.database_id_env or "notion.database_id")
        if not self.llm.get_api_key():
            missing.append(self.llm.api_key_env or "llm.api_key")
        return missing

    @staticmethod
    def run_log_url(environ: Mapping[str, str] | None = None) -> str | None:
        """Link to the GitHub Actions run that executed this job, if any."""
        env = os.environ if environ is None else environ
        run_id = env.get("GITHUB_RUN_ID")
        repository = env.get("GITHUB_REPOSITORY")
        if not run_id or not repository:
            return None
        return f"https://github.com/{repository}/actions/runs/{run_id}"

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging. Secrets are left out."""
        return {
            "max_books_per_run": MAX_BOOKS_PER_RUN,
            "max_description_length": MAX_DESCRIPTION_LENGTH,
            "notion": {
                "api_base": self.notion.api_base,
                "api_version": self.notion.api_version,
            },
            "llm": {
                "model": self.llm.model,
                "api_base": self.llm.api_base,
            },
            "providers": {
                "google_books": self.providers.google_books,
                "open_library": self.providers.open_library,
                "hardcover": self.providers.hardcover
                and bool(self.hardcover.get_token()),
                "goodreads": self.providers.goodreads,
            },
            "slack": {
                "enabled": bool(self.slack.get_webhook_url()),
                "timezone": self.slack.timezone,
            },
        }
