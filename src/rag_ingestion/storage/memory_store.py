"""In-process chunk store: a local index for tests and single-machine runs."""

from __future__ import annotations

import logging

import numpy as np

from rag_ingestion.ingestion.embedder import Embedder
from rag_ingestion.storage.base import VectorStoreWriter
from rag_ingestion.storage.models import ChunkRecord, SearchResult

logger = logging.getLogger(__name__)


class InMemoryChunkWriter(VectorStoreWriter):
    """Partitioned dict of records with brute-force cosine search."""

    def __init__(
        self,
        embedder: Embedder,
        *,
        embedding_dimension: int,
        collection_name: str = "chunks",
    ) -> None:
        super().__init__(
            embedder,
            embedding_dimension=embedding_dimension,
            collection_name=collection_name,
        )
        self._partitions: dict[str, dict[str, ChunkRecord]] = {}

    def __len__(self) -> int:
        return sum(len(p) for p in self._partitions.values())

    async def _insert(self, record: ChunkRecord) -> None:
        self._partitions.setdefault(record.document_id, {})[record.id] = record

    async def _query_nearest(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        records = [r for partition in self._partitions.values() for r in partition.values()]
        if not records:
            return []

        matrix = np.asarray([r.embedding for r in records], dtype=np.float64)
        query = np.asarray(query_embedding, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            cosine = np.where(norms > 0, matrix @ query / norms, 0.0)
        distances = 1.0 - cosine

        order = np.argsort(distances, kind="stable")[:top_k]
        return [
            SearchResult(
                chunk_id=records[i].id,
                document_id=records[i].document_id,
                content=records[i].content,
                similarity=float(1.0 - distances[i]),
                metadata=dict(records[i].metadata),
            )
            for i in order
        ]

    async def get_by_document(self, document_id: str) -> list[ChunkRecord]:
        partition = self._partitions.get(document_id, {})
        return sorted(partition.values(), key=lambda r: r.chunk_index)

    async def get_by_id(self, chunk_id: str, document_id: str) -> ChunkRecord | None:
        return self._partitions.get(document_id, {}).get(chunk_id)

    async def delete_by_id(self, chunk_id: str, document_id: str) -> bool:
        partition = self._partitions.get(document_id)
        if partition is None or chunk_id not in partition:
            return False
        del partition[chunk_id]
        if not partition:
            del self._partitions[document_id]
        return True

    async def health_check(self) -> bool:
        return True
