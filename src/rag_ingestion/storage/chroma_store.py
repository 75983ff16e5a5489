"""Chroma implementation of the chunk writer.

Chroma has no native partitions, so ``document_id`` is stored in each
record's metadata and every partition-scoped call filters on it.  The
collection is created with cosine space, so Chroma's distances are
``1 - cosine similarity``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import chromadb

from rag_ingestion.exceptions import StoreError
from rag_ingestion.ingestion.embedder import Embedder
from rag_ingestion.storage.base import VectorStoreWriter
from rag_ingestion.storage.models import ChunkRecord, SearchResult

logger = logging.getLogger(__name__)

_RECORD_INCLUDE = ["embeddings", "documents", "metadatas"]


def _to_chroma_metadata(record: ChunkRecord) -> dict[str, Any]:
    """Flatten a record's bookkeeping fields for Chroma.

    Chroma metadata values must be flat str/int/float/bool, so the free-form
    chunk metadata travels as one JSON string.
    """
    return {
        "document_id": record.document_id,
        "chunk_index": record.chunk_index,
        "content_length": record.content_length,
        "created_at": record.created_at.isoformat(),
        "metadata_json": json.dumps(record.metadata, default=str),
    }


def _from_chroma(chunk_id: str, content: str | None, embedding: Any, meta: dict[str, Any] | None) -> ChunkRecord:
    meta = meta or {}
    return ChunkRecord(
        id=chunk_id,
        document_id=meta["document_id"],
        content=content or "",
        embedding=[float(v) for v in embedding] if embedding is not None else [],
        metadata=json.loads(meta.get("metadata_json") or "{}"),
        chunk_index=int(meta.get("chunk_index", 0)),
        content_length=int(meta.get("content_length", len(content or ""))),
        created_at=datetime.fromisoformat(meta["created_at"]),
    )


def _column(result: Any, key: str, size: int) -> list[Any]:
    # newer chromadb returns numpy arrays for embeddings, so avoid truthiness
    values = result.get(key)
    if values is None:
        return [None] * size
    return list(values)


class ChromaChunkWriter(VectorStoreWriter):
    """Chroma-backed chunk writer using the async HTTP client.

    Parameters
    ----------
    embedder:
        Embedding capability.
    embedding_dimension:
        Required vector length.
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server address.
    database:
        Chroma database inside the default tenant.
    collection:
        Pre-built async collection; skips connecting in :meth:`open`.
    """

    def __init__(
        self,
        embedder: Embedder,
        *,
        embedding_dimension: int,
        collection_name: str = "chunks",
        host: str = "localhost",
        port: int = 8000,
        database: str = "default_database",
        collection: Any = None,
    ) -> None:
        super().__init__(
            embedder,
            embedding_dimension=embedding_dimension,
            collection_name=collection_name,
        )
        self._host = host
        self._port = port
        self._database = database
        self._client: Any = None
        self._collection: Any = collection

    # -- lifecycle ------------------------------------------------------------

    async def open(self) -> None:
        if self._collection is not None:
            return
        try:
            self._client = await chromadb.AsyncHttpClient(
                host=self._host,
                port=self._port,
                database=self._database,
            )
            self._collection = await self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )
        except Exception as exc:
            raise StoreError(
                f"Could not connect to Chroma at {self._host}:{self._port}: {exc}",
                details={"collection": self.collection_name},
            ) from exc
        logger.info(
            "Connected to Chroma %s:%d (database=%s, collection=%s)",
            self._host,
            self._port,
            self._database,
            self.collection_name,
        )

    async def close(self) -> None:
        self._collection = None
        self._client = None
        await super().close()

    @property
    def collection(self) -> Any:
        if self._collection is None:
            raise StoreError("Chroma writer is not open; call open() or use 'async with'")
        return self._collection

    # -- VectorStoreWriter overrides ------------------------------------------

    async def _insert(self, record: ChunkRecord) -> None:
        collection = self.collection
        try:
            await collection.add(
                ids=[record.id],
                embeddings=[record.embedding],
                documents=[record.content],
                metadatas=[_to_chroma_metadata(record)],
            )
        except Exception as exc:
            raise StoreError(
                f"Failed to store chunk {record.chunk_index} of {record.document_id}: {exc}",
                details={"document_id": record.document_id, "chunk_index": record.chunk_index},
            ) from exc

    async def _query_nearest(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        collection = self.collection
        try:
            count = await collection.count()
            if count == 0:
                return []
            results = await collection.query(
                query_embeddings=[query_embedding],
                n_results=min(top_k, count),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StoreError(f"Similarity search failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        size = len(ids)
        docs = (results.get("documents") or [[None] * size])[0]
        metas = (results.get("metadatas") or [[None] * size])[0]
        distances = (results.get("distances") or [[1.0] * size])[0]

        hits: list[SearchResult] = []
        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            meta = meta or {}
            hits.append(
                SearchResult(
                    chunk_id=chunk_id,
                    document_id=meta.get("document_id", ""),
                    content=content or "",
                    similarity=1.0 - float(dist),
                    metadata=json.loads(meta.get("metadata_json") or "{}"),
                )
            )
        return hits

    async def get_by_document(self, document_id: str) -> list[ChunkRecord]:
        collection = self.collection
        try:
            result = await collection.get(
                where={"document_id": document_id},
                include=_RECORD_INCLUDE,
            )
        except Exception as exc:
            raise StoreError(
                f"Failed to read chunks of {document_id}: {exc}",
                details={"document_id": document_id},
            ) from exc
        records = self._records(result)
        return sorted(records, key=lambda r: r.chunk_index)

    async def get_by_id(self, chunk_id: str, document_id: str) -> ChunkRecord | None:
        collection = self.collection
        try:
            result = await collection.get(
                ids=[chunk_id],
                where={"document_id": document_id},
                include=_RECORD_INCLUDE,
            )
        except Exception as exc:
            raise StoreError(
                f"Failed to read chunk {chunk_id}: {exc}",
                details={"document_id": document_id, "chunk_id": chunk_id},
            ) from exc
        records = self._records(result)
        return records[0] if records else None

    async def delete_by_id(self, chunk_id: str, document_id: str) -> bool:
        collection = self.collection
        try:
            existing = await collection.get(
                ids=[chunk_id],
                where={"document_id": document_id},
                include=[],
            )
            if not existing.get("ids"):
                return False
            await collection.delete(ids=[chunk_id], where={"document_id": document_id})
        except Exception as exc:
            raise StoreError(
                f"Failed to delete chunk {chunk_id}: {exc}",
                details={"document_id": document_id, "chunk_id": chunk_id},
            ) from exc
        logger.debug("Deleted chunk %s of %s", chunk_id, document_id)
        return True

    async def health_check(self) -> bool:
        try:
            if self._client is not None:
                await self._client.heartbeat()
            else:
                await self.collection.count()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _records(result: Any) -> list[ChunkRecord]:
        ids = list(result.get("ids") or [])
        size = len(ids)
        return [
            _from_chroma(chunk_id, content, embedding, meta)
            for chunk_id, content, embedding, meta in zip(
                ids,
                _column(result, "documents", size),
                _column(result, "embeddings", size),
                _column(result, "metadatas", size),
            )
        ]
