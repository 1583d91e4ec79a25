"""
Processing pipeline for book-description-bot.

Each book runs through the stages in order: find candidates, pick one,
clean it, write it to Notion. A stage that fails ends the book's run and its
message becomes the skip reason in the report.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .config import MAX_DESCRIPTION_LENGTH, BotConfig
from .llm import AnthropicClient, clean_description, pick_best_description
from .models import BookPage, Candidate, RunResult
from .notion import NotionClient
from .sources import DescriptionAggregator

logger = logging.getLogger(__name__)

BETWEEN_BOOKS_DELAY = 2.0

NO_DESCRIPTIONS_REASON = "No descriptions found"


@dataclass
class StageResult:
    """Result from a pipeline stage."""

    success: bool
    message: str | None = None


@dataclass
class BookContext:
    """Working state for one book, passed from stage to stage."""

    book: BookPage
    candidates: list[Candidate] = field(default_factory=list)
    selected: Candidate | None = None
    cleaned: str | None = None
    update_attempted: bool = False


class PipelineStage(ABC):
    """Base class for pipeline stages."""

    name: str = "base"

    @abstractmethod
    async def process(self, ctx: BookContext) -> StageResult:
        """Process a book through this stage."""
        pass


class DescriptionSearchStage(PipelineStage):
    """Stage 1: Collect candidate descriptions from every provider."""

    name = "description_search"

    def __init__(self, aggregator: DescriptionAggregator):
        self.aggregator = aggregator

    async def process(self, ctx: BookContext) -> StageResult:
        logger.info("  Searching for descriptions...")
        ctx.candidates = await self.aggregator.gather(ctx.book)

        if not ctx.candidates:
            logger.info("  No descriptions found - skipping")
            return StageResult(success=False, message=NO_DESCRIPTIONS_REASON)

        logger.info(f"  Found {len(ctx.candidates)} description(s)")
        return StageResult(success=True)


class SelectionStage(PipelineStage):
    """Stage 2: Pick the best candidate, asking the LLM if there is a choice."""

    name = "selection"

    def __init__(self, llm: AnthropicClient):
        self.llm = llm

    async def process(self, ctx: BookContext) -> StageResult:
        if not ctx.candidates:
            return StageResult(success=False, message=NO_DESCRIPTIONS_REASON)

        if len(ctx.candidates) == 1:
            logger.info("  Using the only description found")
            ctx.selected = ctx.candidates[0]
            return StageResult(success=True)

        logger.info("  Asking LLM to pick best description...")
        index = await pick_best_description(self.llm, ctx.book, ctx.candidates)
        ctx.selected = ctx.candidates[index]
        logger.info(f"  Selected description #{index + 1} from {ctx.selected.source.value}")
        return StageResult(success=True, message=f"Selected #{index + 1}")


class CleaningStage(PipelineStage):
    """Stage 3: Strip promotional copy from the selected description."""

    name = "cleaning"

    def __init__(self, llm: AnthropicClient):
        self.llm = llm

    async def process(self, ctx: BookContext) -> StageResult:
        if ctx.selected is None:
            return StageResult(success=False, message="No description selected")

        logger.info("  Cleaning description...")
        ctx.cleaned = await clean_description(
            self.llm, ctx.book, ctx.selected.description
        )

        if len(ctx.cleaned) > MAX_DESCRIPTION_LENGTH:
            logger.info(
                f"  Description is {len(ctx.cleaned)} chars, "
                f"will truncate to {MAX_DESCRIPTION_LENGTH}"
            )
        return StageResult(success=True)


class NotionUpdateStage(PipelineStage):
    """Stage 4: Write the cleaned description back to the page."""

    name = "notion_update"

    def __init__(self, notion: NotionClient):
        self.notion = notion

    async def process(self, ctx: BookContext) -> StageResult:
        if not ctx.cleaned:
            return StageResult(success=False, message="No cleaned description")

        logger.info("  Updating Notion...")
        ctx.update_attempted = True
        try:
            await self.notion.update_description(ctx.book.page_id, ctx.cleaned)
        except Exception as e:
            logger.warning(f"  Notion update failed: {e}")
            return StageResult(success=False, message=f"Update failed: {e}")

        logger.info("  Done!")
        return StageResult(success=True)


class Pipeline:
    """
    The main processing pipeline for book-description-bot.

    Books are processed one at a time, each through every stage in sequence.
    """

    def __init__(
        self,
        config: BotConfig,
        notion: NotionClient,
        aggregator: DescriptionAggregator | None = None,
        llm: AnthropicClient | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Bot configuration
            notion: Notion client used for writes
            aggregator: Optional provider aggregator (for testing)
            llm: Optional LLM client (for testing)
        """
        self.notion = notion
        aggregator = aggregator or DescriptionAggregator.from_config(config)
        llm = llm or AnthropicClient(config.llm)
        self.stages: list[PipelineStage] = [
            DescriptionSearchStage(aggregator),
            SelectionStage(llm),
            CleaningStage(llm),
            NotionUpdateStage(notion),
        ]

    async def process_book(self, book: BookPage) -> tuple[StageResult, BookContext]:
        """
        Run one book through all stages.

        Returns the last stage result and the book's context. A failed
        result's message is the reason the book was skipped.
        """
        byline = f" by {book.author}" if book.author else ""
        logger.info(f"Processing: {book.title}{byline}")

        ctx = BookContext(book=book)
        result = StageResult(success=True)
        for stage in self.stages:
            logger.debug(f"Running stage: {stage.name}")
            result = await stage.process(ctx)
            if not result.success:
                logger.debug(f"Stage {stage.name} stopped {book.title!r}: {result.message}")
                break

        return result, ctx

    async def run(self, books: list[BookPage], result: RunResult | None = None) -> RunResult:
        """Process books in order, collecting what was updated and skipped."""
        result = result or RunResult()

        for book in books:
            stage_result, ctx = await self.process_book(book)

            if stage_result.success:
                result.add_updated(book)
            else:
                result.add_skipped(book, stage_result.message or "Unknown error")

            # Books skipped before the update stage made no Notion or LLM calls
            if ctx.update_attempted:
                await asyncio.sleep(BETWEEN_BOOKS_DELAY)

        return result
