"""Writer factory: selects the storage backend from settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rag_ingestion.exceptions import ConfigurationError
from rag_ingestion.storage.base import VectorStoreWriter

if TYPE_CHECKING:
    from rag_ingestion.config import Settings
    from rag_ingestion.ingestion.embedder import Embedder

logger = logging.getLogger(__name__)

BACKENDS = ("chroma", "memory")


def create_writer(settings: Settings, embedder: Embedder | None = None) -> VectorStoreWriter:
    """Build the writer named by ``settings.store_backend``.

    Parameters
    ----------
    settings:
        Pipeline settings.
    embedder:
        Embedding capability; built from *settings* when omitted.

    Raises
    ------
    ConfigurationError
        If the backend name is not one of :data:`BACKENDS`.
    """
    backend = settings.store_backend.strip().lower()
    if backend not in BACKENDS:
        raise ConfigurationError(
            f"Invalid store_backend: {settings.store_backend!r}. Must be one of {', '.join(BACKENDS)}.",
        )

    if embedder is None:
        from rag_ingestion.ingestion.embedder import get_embedder

        embedder = get_embedder(settings)

    if backend == "memory":
        from rag_ingestion.storage.memory_store import InMemoryChunkWriter

        logger.info("Creating in-memory chunk writer (collection=%s)", settings.collection_name)
        return InMemoryChunkWriter(
            embedder,
            embedding_dimension=settings.embedding_dimension,
            collection_name=settings.collection_name,
        )

    from rag_ingestion.storage.chroma_store import ChromaChunkWriter

    logger.info(
        "Creating Chroma chunk writer %s:%d (collection=%s)",
        settings.chroma_host,
        settings.chroma_port,
        settings.collection_name,
    )
    return ChromaChunkWriter(
        embedder,
        embedding_dimension=settings.embedding_dimension,
        collection_name=settings.collection_name,
        host=settings.chroma_host,
        port=settings.chroma_port,
        database=settings.database_name,
    )
