"""Configuration presets for common content types.

Each preset keeps the connection and embedding settings of a base
:class:`~rag_ingestion.config.Settings` and swaps in chunking parameters
tuned for one kind of corpus.
"""

from __future__ import annotations

from typing import Any, Callable

from rag_ingestion.config import ChunkingStrategy, Settings, load_settings


def _derive(base: Settings, **update: Any) -> Settings:
    return load_settings(**{**base.model_dump(), **update})


def for_technical_docs(base: Settings) -> Settings:
    """Header-based, large chunks with some overlap for continuity."""
    return _derive(
        base,
        chunking_strategy=ChunkingStrategy.HEADER_BASED,
        max_tokens_per_chunk=2500,
        overlap_tokens=100,
    )


def for_news_and_articles(base: Settings) -> Settings:
    """Section-based, smaller chunks, minimal overlap."""
    return _derive(
        base,
        chunking_strategy=ChunkingStrategy.SECTION_BASED,
        max_tokens_per_chunk=1500,
        overlap_tokens=50,
    )


def for_semantic_rag(base: Settings) -> Settings:
    """Semantic-aware, balanced chunk size, no overlap."""
    return _derive(
        base,
        chunking_strategy=ChunkingStrategy.SEMANTIC_AWARE,
        max_tokens_per_chunk=2000,
        overlap_tokens=0,
    )


def for_fast_retrieval(base: Settings) -> Settings:
    """Section-based small chunks."""
    return _derive(
        base,
        chunking_strategy=ChunkingStrategy.SECTION_BASED,
        max_tokens_per_chunk=1000,
        overlap_tokens=0,
    )


PRESETS: dict[str, Callable[[Settings], Settings]] = {
    "technical-docs": for_technical_docs,
    "news-articles": for_news_and_articles,
    "semantic-rag": for_semantic_rag,
    "fast-retrieval": for_fast_retrieval,
}
"""Preset name → builder.  Used by the CLI ``--preset`` flag."""
