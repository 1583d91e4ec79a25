"""Tests for the book processing pipeline."""

from unittest.mock import AsyncMock, call

import httpx
import pytest

from book_description_bot.config import BotConfig
from book_description_bot.llm import AnthropicClient
from book_description_bot.models import BookPage, Provenance, RunResult
from book_description_bot.notion import NotionClient
from book_description_bot.pipeline import (
    BookContext,
    CleaningStage,
    DescriptionSearchStage,
    NotionUpdateStage,
    Pipeline,
    SelectionStage,
)
from book_description_bot.sources import DescriptionAggregator


@pytest.fixture
def aggregator():
    return AsyncMock(spec=DescriptionAggregator)


@pytest.fixture
def llm():
    return AsyncMock(spec=AnthropicClient)


@pytest.fixture
def notion():
    return AsyncMock(spec=NotionClient)


@pytest.fixture
def pipeline(aggregator, llm, notion):
    return Pipeline(BotConfig(), notion, aggregator=aggregator, llm=llm)


class TestStages:
    """Test individual stages."""

    async def test_search_stage_no_candidates(self, aggregator, book):
        """No candidates fails the stage with the skip reason."""
        aggregator.gather.return_value = []
        ctx = BookContext(book=book)

        result = await DescriptionSearchStage(aggregator).process(ctx)

        assert result.success is False
        assert result.message == "No descriptions found"

    async def test_selection_stage_single(self, llm, book, make_candidate):
        """The only candidate is selected without the LLM."""
        ctx = BookContext(book=book, candidates=[make_candidate("Only one.")])

        result = await SelectionStage(llm).process(ctx)

        assert result.success is True
        assert ctx.selected.description == "Only one."
        llm.complete.assert_not_awaited()

    async def test_cleaning_stage(self, llm, book, make_candidate):
        """Cleaned text is stored on the context."""
        llm.complete.return_value = "Paul Atreides travels to Arrakis."
        ctx = BookContext(book=book, selected=make_candidate("Raw text."))

        await CleaningStage(llm).process(ctx)

        assert ctx.cleaned == "Paul Atreides travels to Arrakis."

    async def test_update_stage_failure(self, notion, book):
        """Write errors become the skip reason."""
        notion.update_description.side_effect = httpx.ConnectError("connection reset")
        ctx = BookContext(book=book, cleaned="Cleaned.")

        result = await NotionUpdateStage(notion).process(ctx)

        assert result.success is False
        assert result.message == "Update failed: connection reset"
        assert ctx.update_attempted is True

    async def test_selection_stage_no_candidates(self, llm, book):
        """Selection fails cleanly when there is nothing to choose from."""
        result = await SelectionStage(llm).process(BookContext(book=book))

        assert result.success is False
        assert result.message == "No descriptions found"
        llm.complete.assert_not_awaited()

    async def test_cleaning_stage_without_selection(self, llm, book):
        """Cleaning fails instead of raising when nothing was selected."""
        ctx = BookContext(book=book)

        result = await CleaningStage(llm).process(ctx)

        assert result.success is False
        assert result.message == "No description selected"
        assert ctx.cleaned is None
        llm.complete.assert_not_awaited()

    async def test_update_stage_without_cleaned_text(self, notion, book):
        """Nothing is written when there is no cleaned description."""
        ctx = BookContext(book=book)

        result = await NotionUpdateStage(notion).process(ctx)

        assert result.success is False
        assert result.message == "No cleaned description"
        assert ctx.update_attempted is False
        notion.update_description.assert_not_awaited()


class TestPipeline:
    """Test end-to-end processing with mocked services."""

    async def test_dune_two_candidates(
        self, pipeline, aggregator, llm, notion, book, make_candidate, no_sleep
    ):
        """Model reply "2" selects, cleans and writes the second candidate."""
        short = make_candidate("s" * 500, Provenance.GOOGLE_BOOKS)
        longer = make_candidate("L" * 600, Provenance.OPEN_LIBRARY)
        aggregator.gather.return_value = [short, longer]
        llm.complete.side_effect = ["2", "Cleaned Dune blurb about Arrakis."]

        result, ctx = await pipeline.process_book(book)

        assert result.success is True
        assert ctx.selected is longer
        clean_prompt = llm.complete.await_args_list[1].args[0]
        assert "L" * 600 in clean_prompt
        assert "s" * 500 not in clean_prompt
        notion.update_description.assert_awaited_once_with(
            book.page_id, "Cleaned Dune blurb about Arrakis."
        )

    async def test_no_candidates_skips_selector(
        self, pipeline, aggregator, llm, notion, book
    ):
        """Books without candidates never reach the LLM or Notion."""
        aggregator.gather.return_value = []

        result, ctx = await pipeline.process_book(book)

        assert result.success is False
        assert result.message == "No descriptions found"
        llm.complete.assert_not_awaited()
        notion.update_description.assert_not_awaited()
        assert ctx.update_attempted is False

    async def test_single_candidate_only_cleans(
        self, pipeline, aggregator, llm, notion, book, make_candidate
    ):
        """One candidate means one LLM call (cleaning)."""
        aggregator.gather.return_value = [make_candidate("Desert planet blurb text.")]
        llm.complete.return_value = "Desert planet blurb text."

        result, _ = await pipeline.process_book(book)

        assert result.success is True
        assert llm.complete.await_count == 1
        assert llm.complete.await_args.kwargs["max_tokens"] == 2048

    async def test_llm_down_still_writes_original(
        self, pipeline, aggregator, llm, notion, book, make_candidate
    ):
        """LLM failures fall back to the first candidate's raw text."""
        first = make_candidate("First raw description.")
        aggregator.gather.return_value = [first, make_candidate("Second.")]
        llm.complete.side_effect = httpx.ConnectError("down")

        result, _ = await pipeline.process_book(book)

        assert result.success is True
        notion.update_description.assert_awaited_once_with(
            book.page_id, "First raw description."
        )

    async def test_run_collects_outcomes(
        self, pipeline, aggregator, llm, notion, make_candidate, no_sleep
    ):
        """Run records updates and skips in order, pausing after writes."""
        dune = BookPage(page_id="dune-1", title="Dune", author="Frank Herbert")
        emma = BookPage(page_id="emma-2", title="Emma")
        beloved = BookPage(page_id="beloved-3", title="Beloved")

        aggregator.gather.side_effect = [
            [make_candidate("Desert planet.")],
            [],
            [make_candidate("Sethe remembers.")],
        ]
        llm.complete.side_effect = ["Desert planet.", "Sethe remembers."]
        notion.update_description.side_effect = [None, httpx.ConnectError("reset")]

        result = await pipeline.run([dune, emma, beloved])

        assert [b.title for b in result.updated] == ["Dune"]
        assert [(b.title, b.reason) for b in result.skipped] == [
            ("Emma", "No descriptions found"),
            ("Beloved", "Update failed: reset"),
        ]
        assert no_sleep.await_args_list == [call(2.0), call(2.0)]

    async def test_run_uses_given_result(self, pipeline, aggregator, no_sleep):
        """An existing RunResult is filled in, not replaced."""
        aggregator.gather.return_value = []
        existing = RunResult()

        result = await pipeline.run([BookPage(page_id="x", title="Emma")], existing)

        assert result is existing
        assert existing.total == 1

    def test_default_components(self, notion):
        """Without overrides the pipeline builds its own clients."""
        pipeline = Pipeline(BotConfig(), notion)

        assert [stage.name for stage in pipeline.stages] == [
            "description_search",
            "selection",
            "cleaning",
            "notion_update",
        ]
