"""Abstract chunk writer, the only component with access to the store.

Adding a new backend (Cosmos DB, pgvector, Qdrant …) only requires
subclassing :class:`VectorStoreWriter` and implementing the storage
primitives.  Embedding at write time, dimension checks, result ordering and
best-effort bulk deletion are shared.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from rag_ingestion.exceptions import ConfigurationError, StoreError
from rag_ingestion.ingestion.embedder import Embedder
from rag_ingestion.ingestion.models import Chunk
from rag_ingestion.storage.models import ChunkRecord, SearchResult

logger = logging.getLogger(__name__)


class VectorStoreWriter(ABC):
    """Backend-agnostic, partitioned chunk store.

    Records are partitioned by ``document_id``: per-document reads and
    deletes touch one partition, similarity search spans all of them.

    Parameters
    ----------
    embedder:
        Embedding capability used by :meth:`write` and :meth:`search_similar_text`.
    embedding_dimension:
        Required length of every stored and queried vector.
    collection_name:
        Logical name of the collection / container / table.
    """

    def __init__(
        self,
        embedder: Embedder,
        *,
        embedding_dimension: int,
        collection_name: str = "chunks",
    ) -> None:
        if embedding_dimension <= 0:
            raise ConfigurationError("embedding_dimension must be positive")
        self._embedder = embedder
        self.embedding_dimension = embedding_dimension
        self.collection_name = collection_name

    # -- lifecycle ------------------------------------------------------------

    async def open(self) -> None:
        """Acquire store connections.  Idempotent."""

    async def close(self) -> None:
        """Release store and embedding clients."""
        await self._embedder.aclose()

    async def __aenter__(self) -> VectorStoreWriter:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def _insert(self, record: ChunkRecord) -> None:
        """Persist a brand-new record in partition ``record.document_id``.

        Must either fully succeed or raise :class:`StoreError`.
        """
        ...

    @abstractmethod
    async def _query_nearest(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        """Return up to *top_k* hits by ascending cosine distance."""
        ...

    @abstractmethod
    async def get_by_document(self, document_id: str) -> list[ChunkRecord]:
        """All records of *document_id* ordered by ``chunk_index``; ``[]`` if none."""
        ...

    @abstractmethod
    async def get_by_id(self, chunk_id: str, document_id: str) -> ChunkRecord | None:
        """Point lookup; the partition key is mandatory."""
        ...

    @abstractmethod
    async def delete_by_id(self, chunk_id: str, document_id: str) -> bool:
        """Remove one record.  ``False`` when it was already absent.

        Raises
        ------
        StoreError
            Only when the store itself cannot be reached.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared behaviour -----------------------------------------------------

    async def write(self, chunk: Chunk) -> ChunkRecord:
        """Embed *chunk* and persist it as a new record.

        Exactly one record is created per successful call; identical content
        written twice yields two records.

        Raises
        ------
        EmbeddingError
            Embedding generation failed; nothing was written.
        ConfigurationError
            The embedder returned a vector of the wrong length.
        StoreError
            The store rejected the record; nothing was written.
        """
        embedding = await self._embedder.embed(chunk.content)
        self._check_dimension(embedding, what="chunk embedding")
        record = ChunkRecord.from_chunk(chunk, embedding)
        await self._insert(record)
        logger.debug(
            "Stored chunk id=%s document=%s index=%d",
            record.id,
            record.document_id,
            record.chunk_index,
        )
        return record

    async def search_similar(
        self,
        query_embedding: Sequence[float],
        top_k: int = 5,
    ) -> list[SearchResult]:
        """Nearest neighbours of *query_embedding*, most similar first.

        Returns at most *top_k* results and ``[]`` for an empty store.
        """
        self._check_dimension(query_embedding, what="query embedding")
        if top_k <= 0:
            return []
        hits = await self._query_nearest([float(v) for v in query_embedding], top_k)
        hits.sort(key=lambda hit: hit.similarity, reverse=True)
        return hits[:top_k]

    async def search_similar_text(self, query: str, top_k: int = 5) -> list[SearchResult]:
        """Embed *query* with the write-time embedder and delegate to :meth:`search_similar`."""
        embedding = await self._embedder.embed(query)
        return await self.search_similar(embedding, top_k=top_k)

    async def delete_all_for_document(self, document_id: str) -> int:
        """Delete every record of *document_id*, one at a time.

        Best effort: a failing delete is logged and not counted, the rest
        continue.  Returns the number of records actually removed.
        """
        records = await self.get_by_document(document_id)
        deleted = 0
        for record in records:
            try:
                if await self.delete_by_id(record.id, document_id):
                    deleted += 1
            except StoreError:
                logger.warning(
                    "Could not delete chunk %s of %s",
                    record.id,
                    document_id,
                    exc_info=True,
                )
        logger.info("Deleted %d/%d chunks for document %s", deleted, len(records), document_id)
        return deleted

    # -- internals ------------------------------------------------------------

    def _check_dimension(self, vector: Sequence[float], *, what: str) -> None:
        if len(vector) != self.embedding_dimension:
            raise ConfigurationError(
                f"{what} has {len(vector)} dimensions, expected {self.embedding_dimension}",
                details={"expected": self.embedding_dimension, "actual": len(vector)},
            )
