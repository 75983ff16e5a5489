"""Unit tests for the chunking strategies and the chunker registry."""

from __future__ import annotations

from collections import Counter

import pytest

from conftest import WhitespaceTokenizer, words
from rag_ingestion.config import ChunkingStrategy
from rag_ingestion.exceptions import ChunkingError, ConfigurationError
from rag_ingestion.ingestion.chunker import (
    CHUNKER_REGISTRY,
    HeaderChunker,
    SectionChunker,
    SemanticChunker,
    create_chunker,
    describe_strategy,
)
from rag_ingestion.ingestion.models import Document
from rag_ingestion.ingestion.tokenizer import TiktokenTokenizer, count_tokens


def _doc(content: str, **kwargs) -> Document:
    return Document(id="doc.md", content=content, metadata={"source": "doc.md"}, **kwargs)


# ── Size and ordering properties ───────────────────────────────────────


@pytest.mark.parametrize("strategy", list(ChunkingStrategy))
@pytest.mark.parametrize("overlap", [0, 7])
def test_chunks_respect_token_limit_and_index_order(
    tokenizer: WhitespaceTokenizer,
    strategy: ChunkingStrategy,
    overlap: int,
) -> None:
    content = "# Title\n\n" + "\n\n".join(words(40, prefix=f"p{i}_") for i in range(6))
    chunker = create_chunker(strategy, tokenizer, max_tokens_per_chunk=25, overlap_tokens=overlap)

    chunks = list(chunker.chunk(_doc(content)))

    assert len(chunks) > 1
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(len(tokenizer.encode(c.content)) <= 25 for c in chunks)
    assert all(c.document_id == "doc.md" for c in chunks)


@pytest.mark.parametrize("overlap", [1, 5, 12])
def test_overlap_tokens_reappear_at_start_of_next_chunk(
    tokenizer: WhitespaceTokenizer,
    overlap: int,
) -> None:
    chunker = SemanticChunker(tokenizer, max_tokens_per_chunk=20, overlap_tokens=overlap)

    chunks = list(chunker.chunk(_doc(words(200))))

    assert len(chunks) > 2
    for current, following in zip(chunks, chunks[1:]):
        tail = tokenizer.encode(current.content)[-overlap:]
        head = tokenizer.encode(following.content)[: len(tail)]
        assert head == tail


# ── Multi-byte text under a byte-level tiktoken encoding ───────────────

_JAPANESE = "日本語の文章を分割するテストです。" * 40


def _longest_tail(tokenizer: TiktokenTokenizer, text: str, limit: int) -> str:
    return next(text[i:] for i in range(len(text)) if count_tokens(tokenizer, text[i:]) <= limit)


@pytest.mark.parametrize("strategy", list(ChunkingStrategy))
def test_multibyte_chunks_stay_within_limit_and_decode_cleanly(
    byte_tokenizer: TiktokenTokenizer,
    strategy: ChunkingStrategy,
) -> None:
    content = "# 見出し\n\n" + _JAPANESE + "\n\n" + "🙂 emoji 🎉 " * 30
    chunker = create_chunker(strategy, byte_tokenizer, max_tokens_per_chunk=50, overlap_tokens=7)

    chunks = list(chunker.chunk(_doc(content)))

    assert len(chunks) > 10
    for chunk in chunks:
        assert "\ufffd" not in chunk.content
        assert count_tokens(byte_tokenizer, chunk.content) <= 50
        assert chunk.metadata["token_count"] == count_tokens(byte_tokenizer, chunk.content)


def test_multibyte_overlap_carries_whole_characters(byte_tokenizer: TiktokenTokenizer) -> None:
    chunker = SemanticChunker(byte_tokenizer, max_tokens_per_chunk=50, overlap_tokens=7)

    chunks = list(chunker.chunk(_doc(_JAPANESE)))

    assert len(chunks) > 2
    for current, following in zip(chunks, chunks[1:]):
        tail = _longest_tail(byte_tokenizer, current.content, 7)
        # three bytes per character: two whole characters fit in seven tokens
        assert len(tail) == 2
        assert following.content.startswith(tail)


def test_character_wider_than_budget_is_chunking_error(byte_tokenizer: TiktokenTokenizer) -> None:
    chunker = SemanticChunker(byte_tokenizer, max_tokens_per_chunk=3)

    with pytest.raises(ChunkingError, match="character boundary"):
        list(chunker.chunk(_doc("🙂")))


def test_no_overlap_means_disjoint_chunks(tokenizer: WhitespaceTokenizer) -> None:
    chunker = SemanticChunker(tokenizer, max_tokens_per_chunk=30)
    chunks = list(chunker.chunk(_doc(words(100))))

    rebuilt = " ".join(c.content for c in chunks)
    assert rebuilt == words(100)


def test_chunk_metadata_carries_document_metadata(tokenizer: WhitespaceTokenizer) -> None:
    chunker = SemanticChunker(tokenizer, max_tokens_per_chunk=50)
    [chunk] = list(chunker.chunk(_doc("short text")))

    assert chunk.metadata["source"] == "doc.md"
    assert chunk.metadata["strategy"] == "SemanticAware"
    assert chunk.metadata["token_count"] == 2


def test_empty_document_yields_no_chunks(tokenizer: WhitespaceTokenizer) -> None:
    for strategy in ChunkingStrategy:
        chunker = create_chunker(strategy, tokenizer, max_tokens_per_chunk=10)
        assert list(chunker.chunk(_doc(""))) == []


def test_chunk_is_lazy(tokenizer: WhitespaceTokenizer) -> None:
    chunker = SemanticChunker(tokenizer, max_tokens_per_chunk=10)
    stream = chunker.chunk(_doc(words(50)))

    first = next(stream)
    assert first.index == 0


# ── Strategy behaviour ─────────────────────────────────────────────────


class TestHeaderChunker:
    def test_each_header_section_is_packed_independently(self, tokenizer: WhitespaceTokenizer) -> None:
        content = (
            "## Alpha\n"
            + words(500, "a")
            + "\n\n## Beta\n"
            + words(3000, "b")
            + "\n\n## Gamma\n"
            + words(10, "c")
        )
        chunker = HeaderChunker(tokenizer, max_tokens_per_chunk=2000, overlap_tokens=0)

        chunks = list(chunker.chunk(_doc(content)))
        per_section = Counter(c.metadata["section"] for c in chunks)

        assert per_section["Alpha"] == 1
        assert per_section["Beta"] >= 2
        assert per_section["Gamma"] == 1
        assert all(len(tokenizer.encode(c.content)) <= 2000 for c in chunks)

    def test_section_path_joins_nested_headers(self, tokenizer: WhitespaceTokenizer) -> None:
        content = "# Guide\nintro text\n## Install\nrun the installer\n### Linux\nuse apt"
        chunker = HeaderChunker(tokenizer, max_tokens_per_chunk=100)

        sections = [c.metadata.get("section") for c in chunker.chunk(_doc(content))]

        assert sections == ["Guide", "Guide > Install", "Guide > Install > Linux"]

    def test_section_text_is_kept_verbatim(self, byte_tokenizer: TiktokenTokenizer) -> None:
        first = "# A\nline one\nline two\n\npara two\n    indented code\n"
        content = first + "# B\nnext"
        chunker = HeaderChunker(byte_tokenizer, max_tokens_per_chunk=200)

        chunks = list(chunker.chunk(_doc(content)))

        assert [c.content for c in chunks] == [first.rstrip("\n"), "# B\nnext"]
        assert [c.metadata["section"] for c in chunks] == ["A", "B"]

    def test_headers_inside_code_fences_are_ignored(self, byte_tokenizer: TiktokenTokenizer) -> None:
        content = "# Real\ntext\n```bash\n# not a header\n```\n## Sub\nmore"
        chunker = HeaderChunker(byte_tokenizer, max_tokens_per_chunk=200)

        chunks = list(chunker.chunk(_doc(content)))

        assert [c.metadata["section"] for c in chunks] == ["Real", "Real > Sub"]
        assert "# not a header" in chunks[0].content


class TestSectionChunker:
    def test_splits_on_thematic_breaks(self, tokenizer: WhitespaceTokenizer) -> None:
        content = "first part here\n\n---\n\nsecond part here\n***\nthird part"
        chunker = SectionChunker(tokenizer, max_tokens_per_chunk=100)

        chunks = list(chunker.chunk(_doc(content)))

        assert [c.content for c in chunks] == ["first part here", "second part here", "third part"]
        assert [c.metadata["section"] for c in chunks] == [1, 2, 3]

    def test_prefers_page_boundaries(self, tokenizer: WhitespaceTokenizer) -> None:
        pages = ["page one text", "page two text"]
        chunker = SectionChunker(tokenizer, max_tokens_per_chunk=100)

        chunks = list(chunker.chunk(_doc("\n\n".join(pages), pages=pages)))

        assert [c.metadata["page"] for c in chunks] == [1, 2]
        assert [c.content for c in chunks] == pages


class TestSemanticChunker:
    def test_keeps_paragraphs_whole_when_they_fit(self, tokenizer: WhitespaceTokenizer) -> None:
        content = words(10, "a") + "\n\n" + words(10, "b")
        chunker = SemanticChunker(tokenizer, max_tokens_per_chunk=15)

        chunks = list(chunker.chunk(_doc(content)))

        assert [c.content for c in chunks] == [words(10, "a"), words(10, "b")]


# ── Registry ───────────────────────────────────────────────────────────


class TestCreateChunker:
    def test_registry_covers_every_strategy(self) -> None:
        assert set(CHUNKER_REGISTRY) == set(ChunkingStrategy)

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("HeaderBased", HeaderChunker),
            ("sectionbased", SectionChunker),
            (ChunkingStrategy.SEMANTIC_AWARE, SemanticChunker),
        ],
    )
    def test_builds_registered_chunker(self, tokenizer: WhitespaceTokenizer, tag, expected) -> None:
        chunker = create_chunker(tag, tokenizer, max_tokens_per_chunk=100, overlap_tokens=10)
        assert isinstance(chunker, expected)
        assert chunker.piece_budget == 90

    def test_unknown_strategy(self, tokenizer: WhitespaceTokenizer) -> None:
        with pytest.raises(ConfigurationError):
            create_chunker("Paragraphs", tokenizer)

    @pytest.mark.parametrize(("max_tokens", "overlap"), [(0, 0), (-5, 0), (10, 10), (10, 25), (10, -1)])
    def test_invalid_token_limits(self, tokenizer: WhitespaceTokenizer, max_tokens: int, overlap: int) -> None:
        with pytest.raises(ConfigurationError):
            create_chunker("SemanticAware", tokenizer, max_tokens_per_chunk=max_tokens, overlap_tokens=overlap)

    def test_describe_strategy(self) -> None:
        assert describe_strategy("HeaderBased").startswith("Header-Based Chunking")
        assert "Best for" in describe_strategy(ChunkingStrategy.SECTION_BASED)
