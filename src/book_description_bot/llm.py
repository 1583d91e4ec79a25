"""
LLM helpers for book-description-bot.

Two calls per book: pick the best of several candidate descriptions, then
strip the marketing copy out of the chosen one. Both fall back to a
deterministic answer when the model misbehaves, so a bad response never
stops a run.
"""

import logging
import re

import anthropic

from .config import LLMConfig
from .models import BookPage, Candidate

logger = logging.getLogger(__name__)

PICK_MAX_TOKENS = 50
CLEAN_MAX_TOKENS = 2048

# Guard against the cleaner throwing away nearly everything
MIN_CLEANED_LENGTH = 20
SUBSTANTIAL_RAW_LENGTH = 200

NUMBER_RE = re.compile(r"\b(\d+)\b")
PREAMBLE_RE = re.compile(
    r"^(?:Here(?:'s| is) the cleaned (?:book )?description.*?:\s*)", re.IGNORECASE
)
TAG_RE = re.compile(r"<[^>]*>")

CLEAN_SYSTEM_PROMPT = (
    "You are a text processing tool. Output ONLY the processed text. Never add "
    "introductions, labels, headers, or commentary. Begin your response directly "
    "with the book description text."
)


class LLMError(Exception):
    """The model returned no usable text."""


class AnthropicClient:
    """Thin wrapper around the Anthropic SDK's Messages API."""

    def __init__(self, config: LLMConfig):
        self.api_base = config.api_base.rstrip("/")
        self.api_key = config.get_api_key()
        self.model = config.model
        self.timeout = config.timeout_seconds

    async def complete(
        self,
        prompt: str,
        max_tokens: int,
        system: str | None = None,
    ) -> str:
        """
        Send a single user message and return the reply text.

        Raises:
            anthropic.APIError: On transport or API errors
            LLMError: If the response has no text content
        """
        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        async with anthropic.AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.api_base,
            timeout=self.timeout,
        ) as client:
            response = await client.messages.create(**kwargs)

        if not response.content:
            raise LLMError("Response contained no content")

        text = getattr(response.content[0], "text", None)
        if not text:
            raise LLMError("Response contained no text")
        return text


def _byline(book: BookPage) -> str:
    return f'"{book.title}" by {book.author or "Unknown"}'


def build_pick_prompt(book: BookPage, candidates: list[Candidate]) -> str:
    listing = "\n\n".join(
        f"--- Description {i} ({c.source.value}) ---\n{c.description}"
        for i, c in enumerate(candidates, start=1)
    )
    return f"""I have multiple descriptions for the book {_byline(book)}. Pick the one that is the BEST and most complete actual book description/blurb.

Prefer descriptions that:
- Actually describe what the book is about (plot, themes, premise)
- Are substantive (not just one sentence)
- Read like a back-of-book blurb

Avoid descriptions that are mostly:
- Press quotes or review excerpts
- Lists of awards
- Author biographical information

{listing}

Respond with ONLY the number (1, 2, 3, etc.) of the best description."""


def build_clean_prompt(book: BookPage, raw_description: str) -> str:
    return f"""Clean this book description for {_byline(book)}.

REMOVE all of the following:
- Press/review quotes (e.g., "'A masterpiece' - New York Times", "'Brilliant!' - Stephen King")
- Bestseller/award mentions (e.g., "A #1 New York Times Bestseller", "Winner of the Pulitzer Prize")
- Author endorsement quotes from other authors
- "Now a major motion picture" or similar promotional lines
- Phrases like "From the author of [other book]..." at the very start (but keep if it's mid-description context)
- Marketing superlatives not part of the actual blurb ("The must-read book of the year!")

KEEP:
- The actual book description/blurb text that describes what the book is about
- Plot summary, character introductions, thematic descriptions
- Any "about the book" content that tells the reader what to expect

RULES:
- Return ONLY the cleaned description text, nothing else
- Do NOT add any commentary, headers, or labels
- Do NOT start with phrases like "Here is..." or "The cleaned description..." -- begin DIRECTLY with the book description text
- Do NOT rewrite or paraphrase -- preserve the original wording of the kept parts
- If after removing everything there is very little left, return what you can -- even a single descriptive sentence is fine
- If the ENTIRE description is quotes/accolades with zero actual blurb, return the original text as-is (something is better than nothing)
- Strip any HTML tags if present

Raw description:
{raw_description}"""


def parse_choice(answer: str, count: int) -> int:
    """0-based index from a "pick a number" reply; 0 if unusable."""
    match = NUMBER_RE.search(answer)
    if match:
        number = int(match.group(1))
        if 1 <= number <= count:
            return number - 1
    return 0


async def pick_best_description(
    llm: AnthropicClient,
    book: BookPage,
    candidates: list[Candidate],
) -> int:
    """
    Choose the best candidate description.

    Returns:
        Index into ``candidates``. A single candidate is returned without
        calling the model; any model failure selects the first candidate.
    """
    if len(candidates) <= 1:
        return 0

    try:
        answer = await llm.complete(
            build_pick_prompt(book, candidates), max_tokens=PICK_MAX_TOKENS
        )
    except Exception as e:
        logger.warning(f"  Pick request failed, using first description: {e}")
        return 0

    return parse_choice(answer.strip(), len(candidates))


def postprocess_cleaned(cleaned: str, raw_description: str) -> str:
    """Tidy the cleaner's reply, falling back to the raw text if it gutted it."""
    cleaned = PREAMBLE_RE.sub("", cleaned.strip())

    if (
        len(cleaned) < MIN_CLEANED_LENGTH
        and len(raw_description) > SUBSTANTIAL_RAW_LENGTH
    ):
        logger.warning("  Cleaner returned very short result, using original")
        return raw_description

    return TAG_RE.sub("", cleaned)


async def clean_description(
    llm: AnthropicClient,
    book: BookPage,
    raw_description: str,
) -> str:
    """
    Remove press quotes, awards and other promotional copy.

    Returns:
        The cleaned text, or ``raw_description`` when the model call fails
    """
    try:
        cleaned = await llm.complete(
            build_clean_prompt(book, raw_description),
            max_tokens=CLEAN_MAX_TOKENS,
            system=CLEAN_SYSTEM_PROMPT,
        )
    except Exception as e:
        logger.warning(f"  Clean request failed, using original: {e}")
        return raw_description

    return postprocess_cleaned(cleaned, raw_description)
