"""Document and chunk enrichers.

Enrichers are optional, LLM-backed processing steps.  Document enrichers run
after reading, before chunking; chunk enrichers run over every chunk before
it is written.  The pipeline treats every enricher failure as non-fatal: it
logs the :class:`EnrichmentError` and continues with the unenriched value.

Enricher contract
-----------------
* ``async process(value) -> value`` returns a *new* object; the input is not
  mutated.
* Failures are raised as :class:`~rag_ingestion.exceptions.EnrichmentError`.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from rag_ingestion.exceptions import EnrichmentError
from rag_ingestion.ingestion.models import Chunk, Document
from rag_ingestion.ingestion.prompts import (
    SENTIMENTS,
    build_alt_text_prompt,
    build_keywords_prompt,
    build_sentiment_prompt,
    build_summary_prompt,
)

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel
    from langchain_core.messages import BaseMessage

    from rag_ingestion.config import Settings

logger = logging.getLogger(__name__)

# ![](path) or ![ ](path "title"): images with no alternative text
_EMPTY_ALT_IMAGE = re.compile(r"!\[\s*\]\(\s*([^)\s]+)([^)]*)\)")
_CONTEXT_CHARS = 300


class DocumentEnricher(ABC):
    """Transforms a whole :class:`Document` before chunking."""

    name: str = "document-enricher"

    @abstractmethod
    async def process(self, document: Document) -> Document: ...


class ChunkEnricher(ABC):
    """Transforms one :class:`Chunk` before it is embedded and written."""

    name: str = "chunk-enricher"

    @abstractmethod
    async def process(self, chunk: Chunk) -> Chunk: ...


class _LLMEnricherMixin:
    """Shared chat-model call with error wrapping."""

    name: str

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    async def _ask(self, messages: list[BaseMessage]) -> str:
        try:
            response = await self._llm.ainvoke(messages)
        except Exception as exc:
            raise EnrichmentError(f"{self.name} failed: {exc}") from exc
        content = response.content
        if not isinstance(content, str):
            content = " ".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        return content.strip()


class ImageAltTextEnricher(_LLMEnricherMixin, DocumentEnricher):
    """Fills in empty Markdown image alt text, e.g. ``![](chart.png)``."""

    name = "image-alt-text"

    async def process(self, document: Document) -> Document:
        content = document.content
        matches = list(_EMPTY_ALT_IMAGE.finditer(content))
        if not matches:
            return document

        parts: list[str] = []
        cursor = 0
        for match in matches:
            image_ref, title = match.group(1), match.group(2)
            context = content[max(0, match.start() - _CONTEXT_CHARS) : match.end() + _CONTEXT_CHARS]
            alt = await self._ask(build_alt_text_prompt(image_ref, context))
            alt = alt.replace("[", "(").replace("]", ")").splitlines()[0] if alt else ""
            parts.append(content[cursor : match.start()])
            parts.append(f"![{alt}]({image_ref}{title})")
            cursor = match.end()
        parts.append(content[cursor:])

        logger.debug("Added alt text to %d image(s) in %s", len(matches), document.id)
        return document.model_copy(update={"content": "".join(parts)})


class SummaryEnricher(_LLMEnricherMixin, ChunkEnricher):
    """Adds a short ``summary`` to chunk metadata."""

    name = "summary"

    async def process(self, chunk: Chunk) -> Chunk:
        summary = await self._ask(build_summary_prompt(chunk.content))
        return _with_metadata(chunk, summary=summary)


class SentimentEnricher(_LLMEnricherMixin, ChunkEnricher):
    """Adds ``sentiment`` (positive / neutral / negative) to chunk metadata."""

    name = "sentiment"

    async def process(self, chunk: Chunk) -> Chunk:
        answer = (await self._ask(build_sentiment_prompt(chunk.content))).lower()
        sentiment = next((s for s in SENTIMENTS if s in answer), None)
        if sentiment is None:
            raise EnrichmentError(f"Unrecognised sentiment: {answer[:50]!r}")
        return _with_metadata(chunk, sentiment=sentiment)


class KeywordEnricher(_LLMEnricherMixin, ChunkEnricher):
    """Adds a ``keywords`` list to chunk metadata."""

    name = "keywords"

    async def process(self, chunk: Chunk) -> Chunk:
        answer = await self._ask(build_keywords_prompt(chunk.content))
        return _with_metadata(chunk, keywords=_parse_keywords(answer))


def _with_metadata(chunk: Chunk, **values: Any) -> Chunk:
    return chunk.model_copy(update={"metadata": {**chunk.metadata, **values}})


def _parse_keywords(text: str) -> list[str]:
    """Parse a JSON array of keywords, tolerating Markdown fences and plain CSV."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else 3
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.debug("Keyword answer is not JSON, splitting on commas: %.200s", text)
        parsed = cleaned.split(",")
    if not isinstance(parsed, list):
        raise EnrichmentError(f"Expected a keyword list, got {type(parsed).__name__}")
    return [str(k).strip() for k in parsed if str(k).strip()]


def build_default_enrichers(
    settings: Settings,
    llm: BaseChatModel | None = None,
) -> tuple[list[DocumentEnricher], list[ChunkEnricher]]:
    """Return ``(document_enrichers, chunk_enrichers)`` for *settings*.

    Both lists are empty unless ``settings.enable_enrichment`` is set.
    """
    if not settings.enable_enrichment:
        return [], []

    if llm is None:
        from rag_ingestion.ingestion.llm import get_llm

        llm = get_llm(settings)

    logger.info("LLM enrichment enabled (alt text, summary, sentiment, keywords)")
    return (
        [ImageAltTextEnricher(llm)],
        [SummaryEnricher(llm), SentimentEnricher(llm), KeywordEnricher(llm)],
    )
