"""Token-bounded chunking strategies and the strategy → chunker registry.

Every chunker first cuts a document into structural sections (headers,
pages, or the whole text), then packs each section into pieces of at most
``max_tokens_per_chunk - overlap_tokens`` tokens using LangChain's
recursive splitter, and finally prepends up to ``overlap_tokens`` tokens
from the tail of the previous chunk.  Every cut lands on a character
boundary, and the decoded text of each chunk is re-counted so it never
exceeds ``max_tokens_per_chunk`` tokens under the supplied tokenizer.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Iterable, Iterator

from langchain_text_splitters import RecursiveCharacterTextSplitter

from rag_ingestion.config import ChunkingStrategy
from rag_ingestion.exceptions import ChunkingError, ConfigurationError
from rag_ingestion.ingestion.models import Chunk, Document
from rag_ingestion.ingestion.tokenizer import Tokenizer, count_tokens, try_decode

logger = logging.getLogger(__name__)

Section = tuple[str, dict[str, Any]]


class BaseChunker(ABC):
    """Shared packing and overlap logic.

    Parameters
    ----------
    tokenizer:
        Tokenizer that defines what a "token" is for the size limit.
    max_tokens_per_chunk:
        Hard upper bound on tokens per chunk, overlap included.
    overlap_tokens:
        Tokens copied from the tail of the previous chunk.
    """

    strategy: ClassVar[ChunkingStrategy]
    separators: ClassVar[list[str]] = ["\n\n", "\n", " ", ""]

    def __init__(
        self,
        tokenizer: Tokenizer,
        max_tokens_per_chunk: int = 2000,
        overlap_tokens: int = 0,
    ) -> None:
        if max_tokens_per_chunk <= 0:
            raise ConfigurationError("max_tokens_per_chunk must be positive")
        if not 0 <= overlap_tokens < max_tokens_per_chunk:
            raise ConfigurationError(
                f"overlap_tokens ({overlap_tokens}) must be >= 0 and "
                f"< max_tokens_per_chunk ({max_tokens_per_chunk})"
            )
        self.tokenizer = tokenizer
        self.max_tokens_per_chunk = max_tokens_per_chunk
        self.overlap_tokens = overlap_tokens
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.piece_budget,
            chunk_overlap=0,
            length_function=lambda text: count_tokens(tokenizer, text),
            separators=self.separators,
        )

    @property
    def piece_budget(self) -> int:
        """Fresh tokens allowed per chunk once overlap is reserved."""
        return self.max_tokens_per_chunk - self.overlap_tokens

    @abstractmethod
    def split_sections(self, document: Document) -> Iterable[Section]:
        """Yield ``(text, metadata)`` structural sections of *document*."""
        ...

    def chunk(self, document: Document) -> Iterator[Chunk]:
        """Lazily yield chunks of *document* in index order."""
        previous: list[int] = []
        index = 0
        for text, section_meta in self.split_sections(document):
            for piece in self._pack(text):
                tokens, content = self._with_overlap(previous, piece)
                yield Chunk(
                    document_id=document.id,
                    index=index,
                    content=content,
                    metadata={
                        **document.metadata,
                        **section_meta,
                        "strategy": self.strategy.value,
                        "token_count": count_tokens(self.tokenizer, content),
                    },
                )
                previous = tokens
                index += 1
        logger.debug("Chunked %s into %d chunks (%s)", document.id, index, self.strategy.value)

    def _with_overlap(self, previous: list[int], piece: list[int]) -> tuple[list[int], str]:
        """Prepend the longest clean tail of *previous* that keeps the chunk within the cap."""
        if self.overlap_tokens:
            for cut in range(max(len(previous) - self.overlap_tokens, 0), len(previous)):
                tokens = previous[cut:] + piece
                content = try_decode(self.tokenizer, tokens)
                if content is not None and count_tokens(self.tokenizer, content) <= self.max_tokens_per_chunk:
                    return tokens, content
        return piece, self.tokenizer.decode(piece)

    def _pack(self, text: str) -> Iterator[list[int]]:
        """Split *text* into token lists of at most :attr:`piece_budget` tokens."""
        if not text.strip():
            return
        for piece in self._splitter.split_text(text):
            tokens = self.tokenizer.encode(piece)
            # the recursive splitter measures pieces before re-joining them,
            # so fall back to hard token windows when a piece overshoots
            start = 0
            while start < len(tokens):
                end = self._window_end(tokens, start)
                yield tokens[start:end]
                start = end

    def _window_end(self, tokens: list[int], start: int) -> int:
        """Furthest end whose window decodes to whole characters within the budget."""
        for end in range(min(start + self.piece_budget, len(tokens)), start, -1):
            window = try_decode(self.tokenizer, tokens[start:end])
            if window is not None and count_tokens(self.tokenizer, window) <= self.piece_budget:
                return end
        raise ChunkingError(
            f"No character boundary within {self.piece_budget} tokens; "
            "raise max_tokens_per_chunk or lower overlap_tokens",
            details={"piece_budget": self.piece_budget, "offset": start},
        )


_ATX_HEADER = re.compile(r"^(#{1,3})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")
_CODE_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


class HeaderChunker(BaseChunker):
    """Split on markdown headers (H1–H3), then pack each section.

    Section text is taken verbatim from the document, header line included.
    Header-like lines inside fenced code blocks are not treated as headers.
    """

    strategy = ChunkingStrategy.HEADER_BASED

    def split_sections(self, document: Document) -> Iterable[Section]:
        path: dict[int, str] = {}
        meta: dict[str, Any] = {}
        lines: list[str] = []
        fence: str | None = None
        for line in document.content.splitlines(keepends=True):
            bare = line.rstrip("\r\n")
            marker = _CODE_FENCE.match(bare)
            header = None if fence or marker else _ATX_HEADER.match(bare)
            if marker:
                if fence is None:
                    fence = marker.group(1)
                elif marker.group(1)[0] == fence[0] and len(marker.group(1)) >= len(fence):
                    fence = None
            elif header:
                if lines:
                    yield "".join(lines), meta
                level = len(header.group(1))
                path = {lvl: title for lvl, title in path.items() if lvl < level}
                path[level] = header.group(2).strip()
                meta = {"section": " > ".join(path[lvl] for lvl in sorted(path))}
                lines = []
            lines.append(line)
        if lines:
            yield "".join(lines), meta


_SECTION_BREAK = re.compile(r"\f|^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.MULTILINE)


class SectionChunker(BaseChunker):
    """Split on page boundaries, or on form feeds / thematic breaks."""

    strategy = ChunkingStrategy.SECTION_BASED

    def split_sections(self, document: Document) -> Iterable[Section]:
        if document.pages:
            for number, page in enumerate(document.pages, start=1):
                yield page, {"page": number}
            return
        for number, section in enumerate(_SECTION_BREAK.split(document.content), start=1):
            if section.strip():
                yield section, {"section": number}


class SemanticChunker(BaseChunker):
    """Pack whole paragraphs, then lines, then sentences, before cutting words."""

    strategy = ChunkingStrategy.SEMANTIC_AWARE
    separators = ["\n\n", "\n", ". ", "? ", "! ", "; ", ", ", " ", ""]

    def split_sections(self, document: Document) -> Iterable[Section]:
        yield document.content, {}


# ---------------------------------------------------------------------------
# Strategy registry
# ---------------------------------------------------------------------------

CHUNKER_REGISTRY: dict[ChunkingStrategy, type[BaseChunker]] = {
    ChunkingStrategy.HEADER_BASED: HeaderChunker,
    ChunkingStrategy.SECTION_BASED: SectionChunker,
    ChunkingStrategy.SEMANTIC_AWARE: SemanticChunker,
}
"""Mapping of strategy tag → chunker class.  Add an entry to add a strategy."""


def create_chunker(
    strategy: ChunkingStrategy | str,
    tokenizer: Tokenizer,
    max_tokens_per_chunk: int = 2000,
    overlap_tokens: int = 0,
) -> BaseChunker:
    """Instantiate the chunker registered for *strategy*.

    Raises
    ------
    ConfigurationError
        Unknown strategy tag or invalid token limits.
    """
    tag = ChunkingStrategy.parse(strategy)
    chunker_cls = CHUNKER_REGISTRY.get(tag)
    if chunker_cls is None:
        raise ConfigurationError(f"No chunker registered for strategy {tag.value!r}")
    logger.info(
        "Creating %s (max_tokens=%d, overlap=%d)",
        chunker_cls.__name__,
        max_tokens_per_chunk,
        overlap_tokens,
    )
    return chunker_cls(tokenizer, max_tokens_per_chunk, overlap_tokens)


STRATEGY_DESCRIPTIONS: dict[ChunkingStrategy, str] = {
    ChunkingStrategy.HEADER_BASED: (
        "Header-Based Chunking: splits documents on markdown headers (H1, H2, H3). "
        "Best for: documents with clear hierarchical structure, technical documentation. "
        "Pros: preserves logical document structure. "
        "Cons: may create very large sections if headers are sparse."
    ),
    ChunkingStrategy.SECTION_BASED: (
        "Section-Based Chunking: splits documents on section boundaries (pages, breaks). "
        "Best for: long documents with natural section breaks, multi-page documents. "
        "Pros: balanced chunk sizes, maintains readability. "
        "Cons: may split related content if boundaries don't align with meaning."
    ),
    ChunkingStrategy.SEMANTIC_AWARE: (
        "Semantic-Aware Chunking: splits on the largest meaningful boundary "
        "(paragraph, line, sentence) that fits the token budget. "
        "Best for: complex documents, academic papers, articles. "
        "Pros: keeps complete thoughts together, good for semantic search. "
        "Cons: variable-sized chunks."
    ),
}


def describe_strategy(strategy: ChunkingStrategy | str) -> str:
    """Return guidance on when to use *strategy*."""
    return STRATEGY_DESCRIPTIONS[ChunkingStrategy.parse(strategy)]
