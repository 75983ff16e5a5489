"""
Storage: the chunk writer and its backends.

The pipeline only ever talks to :class:`VectorStoreWriter`, so the backing
database can be swapped through ``STORE_BACKEND`` without touching the
ingestion code.

Public surface
--------------
- :class:`VectorStoreWriter`: abstract, partitioned chunk store.
- :class:`InMemoryChunkWriter`: local numpy-backed store.
- :class:`ChromaChunkWriter`: Chroma backend (async HTTP client).
- :class:`ChunkRecord`, :class:`SearchResult`: data models.
- :func:`create_writer`: backend selection from settings.
"""

from rag_ingestion.storage.base import VectorStoreWriter
from rag_ingestion.storage.factory import create_writer
from rag_ingestion.storage.memory_store import InMemoryChunkWriter
from rag_ingestion.storage.models import ChunkRecord, SearchResult

__all__ = [
    "ChromaChunkWriter",
    "ChunkRecord",
    "InMemoryChunkWriter",
    "SearchResult",
    "VectorStoreWriter",
    "create_writer",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaChunkWriter to avoid pulling in chromadb at import time."""
    if name == "ChromaChunkWriter":
        from rag_ingestion.storage.chroma_store import ChromaChunkWriter

        return ChromaChunkWriter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
