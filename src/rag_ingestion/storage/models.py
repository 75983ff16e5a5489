"""Persisted chunk records and search hits."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from rag_ingestion.ingestion.models import Chunk


class ChunkRecord(BaseModel):
    """The stored form of a chunk.

    Records are immutable; the only way to change one is to delete it and
    write a new one.

    Attributes
    ----------
    id:
        Globally unique id generated at write time.
    document_id:
        Partition key; every chunk of a document lives in one partition.
    content:
        Chunk text.
    embedding:
        Vector of exactly ``embedding_dimension`` floats.
    metadata:
        Chunker and enricher metadata.
    chunk_index:
        Position of the chunk within its document.
    content_length:
        Character length of ``content``.
    created_at:
        UTC write timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    document_id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_index: int
    content_length: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: list[float]) -> ChunkRecord:
        return cls(
            document_id=chunk.document_id,
            content=chunk.content,
            embedding=embedding,
            metadata=dict(chunk.metadata),
            chunk_index=chunk.index,
            content_length=len(chunk.content),
        )


class SearchResult(BaseModel):
    """A nearest-neighbour hit; ``similarity = 1 - cosine distance``."""

    chunk_id: str
    document_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:  # noqa: D105
        return f"[{self.document_id} {self.similarity:.3f}] {self.content[:120]}…"
