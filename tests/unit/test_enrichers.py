"""Unit tests for the LLM-backed enrichers (chat model is mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from rag_ingestion.config import Settings
from rag_ingestion.exceptions import EnrichmentError
from rag_ingestion.ingestion.enrichers import (
    ImageAltTextEnricher,
    KeywordEnricher,
    SentimentEnricher,
    SummaryEnricher,
    build_default_enrichers,
)
from rag_ingestion.ingestion.models import Chunk, Document


def _llm(*answers: str) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[AIMessage(content=a) for a in answers])
    return llm


def _failing_llm() -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=TimeoutError("deadline exceeded"))
    return llm


@pytest.fixture()
def chunk() -> Chunk:
    return Chunk(
        document_id="report.md",
        index=0,
        content="Revenue grew 20% year over year, driven by cloud adoption.",
        metadata={"strategy": "SemanticAware"},
    )


class TestChunkEnrichers:
    @pytest.mark.asyncio
    async def test_summary(self, chunk: Chunk) -> None:
        llm = _llm("  Revenue rose on cloud demand.  ")

        enriched = await SummaryEnricher(llm).process(chunk)

        assert enriched.metadata["summary"] == "Revenue rose on cloud demand."
        assert enriched.metadata["strategy"] == "SemanticAware"
        assert "summary" not in chunk.metadata
        messages = llm.ainvoke.await_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == chunk.content

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("answer", "expected"), [("Positive", "positive"), ("neutral.", "neutral")])
    async def test_sentiment(self, chunk: Chunk, answer: str, expected: str) -> None:
        enriched = await SentimentEnricher(_llm(answer)).process(chunk)
        assert enriched.metadata["sentiment"] == expected

    @pytest.mark.asyncio
    async def test_sentiment_rejects_unknown_label(self, chunk: Chunk) -> None:
        with pytest.raises(EnrichmentError, match="Unrecognised sentiment"):
            await SentimentEnricher(_llm("ambivalent")).process(chunk)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "answer",
        [
            '["revenue", "cloud", "growth"]',
            '```json\n["revenue", "cloud", "growth"]\n```',
            "revenue, cloud, growth",
        ],
    )
    async def test_keywords(self, chunk: Chunk, answer: str) -> None:
        enriched = await KeywordEnricher(_llm(answer)).process(chunk)
        assert enriched.metadata["keywords"] == ["revenue", "cloud", "growth"]

    @pytest.mark.asyncio
    async def test_llm_failure_is_enrichment_error(self, chunk: Chunk) -> None:
        with pytest.raises(EnrichmentError, match="deadline exceeded"):
            await SummaryEnricher(_failing_llm()).process(chunk)


class TestImageAltTextEnricher:
    @pytest.mark.asyncio
    async def test_fills_only_empty_alt_text(self) -> None:
        doc = Document(
            id="guide.md",
            content="Intro\n\n![](arch.png)\n\nText ![Existing](logo.png) and ![ ](flow.svg \"Flow\")",
        )
        llm = _llm("Architecture diagram of the cluster", "Request flow chart")

        enriched = await ImageAltTextEnricher(llm).process(doc)

        assert "![Architecture diagram of the cluster](arch.png)" in enriched.content
        assert "![Existing](logo.png)" in enriched.content
        assert '![Request flow chart](flow.svg "Flow")' in enriched.content
        assert llm.ainvoke.await_count == 2
        assert doc.content.startswith("Intro\n\n![](arch.png)")

    @pytest.mark.asyncio
    async def test_no_images_skips_llm(self) -> None:
        llm = _llm()
        doc = Document(id="plain.md", content="no pictures here")

        assert await ImageAltTextEnricher(llm).process(doc) is doc
        llm.ainvoke.assert_not_awaited()


class TestBuildDefaultEnrichers:
    def test_disabled_by_default(self, settings: Settings) -> None:
        assert build_default_enrichers(settings) == ([], [])

    def test_enabled(self, settings: Settings) -> None:
        enabled = settings.model_copy(update={"enable_enrichment": True})

        document_enrichers, chunk_enrichers = build_default_enrichers(enabled, llm=MagicMock())

        assert [type(e) for e in document_enrichers] == [ImageAltTextEnricher]
        assert [type(e) for e in chunk_enrichers] == [SummaryEnricher, SentimentEnricher, KeywordEnricher]
