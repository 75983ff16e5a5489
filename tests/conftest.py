"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import math
from typing import Sequence

import pytest
import tiktoken

from rag_ingestion.config import Settings, load_settings
from rag_ingestion.exceptions import EmbeddingError
from rag_ingestion.ingestion.embedder import Embedder
from rag_ingestion.ingestion.tokenizer import TiktokenTokenizer
from rag_ingestion.storage.memory_store import InMemoryChunkWriter

EMBEDDING_DIM = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class WhitespaceTokenizer:
    """One token per whitespace-separated word; ``encode(decode(t)) == t``."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._words: list[str] = []

    def encode(self, text: str) -> list[int]:
        tokens = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._words)
                self._words.append(word)
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens: Sequence[int]) -> str:
        return " ".join(self._words[t] for t in tokens)


def byte_encoding() -> tiktoken.Encoding:
    """Offline tiktoken encoding with one token per UTF-8 byte.

    Multi-byte characters (CJK, emoji) span several tokens, as they do in
    the real BPE encodings.
    """
    return tiktoken.Encoding(
        name="bytes",
        pat_str=r"\S+|\s+",
        mergeable_ranks={bytes([i]): i for i in range(256)},
        special_tokens={},
    )


class HashEmbedder(Embedder):
    """Deterministic unit vectors derived from a SHA-256 of the text."""

    def __init__(self, dimension: int = EMBEDDING_DIM, fail_on: str | None = None) -> None:
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.closed = False

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingError(f"embedding service rejected {text[:20]!r}")
        digest = hashlib.sha256(text.encode()).digest()
        raw = [digest[i % len(digest)] - 127.5 for i in range(self.dimension)]
        norm = math.sqrt(sum(v * v for v in raw)) or 1.0
        return [v / norm for v in raw]

    async def aclose(self) -> None:
        self.closed = True


def words(n: int, prefix: str = "w") -> str:
    """``n`` distinct words, e.g. ``w0 w1 w2``."""
    return " ".join(f"{prefix}{i}" for i in range(n))


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def tokenizer() -> WhitespaceTokenizer:
    return WhitespaceTokenizer()


@pytest.fixture()
def byte_tokenizer() -> TiktokenTokenizer:
    return TiktokenTokenizer(encoding=byte_encoding())


@pytest.fixture()
def embedder() -> HashEmbedder:
    return HashEmbedder()


@pytest.fixture()
def writer(embedder: HashEmbedder) -> InMemoryChunkWriter:
    return InMemoryChunkWriter(embedder, embedding_dimension=EMBEDDING_DIM)


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Settings:
    """Memory-backed settings isolated from the caller's environment and .env."""
    monkeypatch.chdir(tmp_path)
    for var in ("AZURE_OPENAI_ENDPOINT", "CHUNKING_STRATEGY", "MAX_TOKENS_PER_CHUNK", "OVERLAP_TOKENS"):
        monkeypatch.delenv(var, raising=False)
    return load_settings(
        store_backend="memory",
        embedding_dimension=EMBEDDING_DIM,
        max_tokens_per_chunk=50,
        overlap_tokens=0,
    )
