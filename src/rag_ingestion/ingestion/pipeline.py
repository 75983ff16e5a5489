"""Ingestion orchestrator: read → enrich → chunk → enrich → embed → store.

:class:`IngestionPipeline` is the only public entry point for getting files
into the vector store.  Each document is processed in isolation: an
operational failure (unreadable file, embedding or store outage) ends that
document with a failed :class:`IngestionOutcome` and processing moves on to
the next one.  Configuration problems are raised to the caller.

Example
-------
>>> async with IngestionPipeline.from_settings(settings) as pipeline:
...     async for outcome in pipeline.process_directory("docs", "*.md"):
...         print(outcome)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator, Sequence

from rag_ingestion.config import Settings
from rag_ingestion.exceptions import ConfigurationError, NotFoundError
from rag_ingestion.ingestion.chunker import BaseChunker, create_chunker
from rag_ingestion.ingestion.enrichers import ChunkEnricher, DocumentEnricher
from rag_ingestion.ingestion.loader import read_file
from rag_ingestion.ingestion.models import Chunk, Document, FailureStage, IngestionOutcome
from rag_ingestion.ingestion.tokenizer import TiktokenTokenizer, Tokenizer
from rag_ingestion.storage.base import VectorStoreWriter

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Sequential, failure-isolating document ingestion.

    Parameters
    ----------
    settings:
        Immutable pipeline settings; selects the chunking strategy and limits.
    writer:
        Destination store.  Opened and closed by ``async with``.
    tokenizer:
        Token counter shared by the chunker; defaults to tiktoken for
        ``settings.tokenizer_model``.
    chunker:
        Explicit chunker, bypassing the strategy registry.
    document_enrichers / chunk_enrichers:
        Optional enrichers, run in the given order.

    Raises
    ------
    ConfigurationError
        At construction, for an unknown strategy or invalid token limits.
    """

    def __init__(
        self,
        settings: Settings,
        writer: VectorStoreWriter,
        *,
        tokenizer: Tokenizer | None = None,
        chunker: BaseChunker | None = None,
        document_enrichers: Sequence[DocumentEnricher] = (),
        chunk_enrichers: Sequence[ChunkEnricher] = (),
    ) -> None:
        self.settings = settings
        self.writer = writer
        if chunker is None:
            chunker = create_chunker(
                settings.chunking_strategy,
                tokenizer or TiktokenTokenizer(settings.tokenizer_model),
                settings.max_tokens_per_chunk,
                settings.overlap_tokens,
            )
        self.chunker = chunker
        self.document_enrichers = list(document_enrichers)
        self.chunk_enrichers = list(chunk_enrichers)

    @classmethod
    def from_settings(cls, settings: Settings) -> IngestionPipeline:
        """Wire tokenizer, embedder, writer and enrichers from *settings*."""
        from rag_ingestion.ingestion.enrichers import build_default_enrichers
        from rag_ingestion.storage.factory import create_writer

        document_enrichers, chunk_enrichers = build_default_enrichers(settings)
        return cls(
            settings,
            create_writer(settings),
            document_enrichers=document_enrichers,
            chunk_enrichers=chunk_enrichers,
        )

    async def __aenter__(self) -> IngestionPipeline:
        await self.writer.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.writer.close()

    # -- public API -----------------------------------------------------------

    def process_directory(
        self,
        path: str | Path,
        file_pattern: str = "*.md",
    ) -> AsyncIterator[IngestionOutcome]:
        """Stream one outcome per file matching *file_pattern* in *path*.

        The directory is checked immediately; the returned async iterator
        processes each document only when the next outcome is pulled.

        Raises
        ------
        NotFoundError
            If *path* is not an existing directory.
        """
        directory = Path(path)
        if not directory.is_dir():
            raise NotFoundError(f"Directory not found: {directory}", details={"path": str(directory)})
        return self._iter_directory(directory, file_pattern)

    async def process_single_document(self, file_path: str | Path) -> IngestionOutcome:
        """Run the full stage sequence for one file.

        Raises
        ------
        NotFoundError
            If *file_path* does not exist.
        """
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}", details={"path": str(path)})
        return await self._process(path)

    async def process_documents(
        self,
        path: str | Path,
        file_pattern: str = "*.md",
    ) -> list[IngestionOutcome]:
        """Collect :meth:`process_directory` into a list and log a summary."""
        outcomes = [outcome async for outcome in self.process_directory(path, file_pattern)]
        failed = [o for o in outcomes if not o.succeeded]
        logger.info(
            "Ingestion complete: %d documents, %d succeeded, %d failed, %d chunks written",
            len(outcomes),
            len(outcomes) - len(failed),
            len(failed),
            sum(o.chunks_written for o in outcomes),
        )
        for outcome in failed:
            logger.warning("  %s", outcome)
        return outcomes

    # -- stages ---------------------------------------------------------------

    async def _iter_directory(self, directory: Path, file_pattern: str) -> AsyncIterator[IngestionOutcome]:
        files = sorted(p for p in directory.glob(file_pattern) if p.is_file())
        logger.info("Found %d file(s) matching %r in %s", len(files), file_pattern, directory)
        for file_path in files:
            yield await self._process(file_path)

    async def _process(self, path: Path) -> IngestionOutcome:
        document_id = path.name
        logger.info("Processing %s", path)

        try:
            document = await read_file(path)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Failed to read %s", document_id)
            return IngestionOutcome.failed(document_id, FailureStage.READ, exc)

        document = await self._enrich_document(document)

        try:
            chunks = list(self.chunker.chunk(document))
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Failed to chunk %s", document_id)
            return IngestionOutcome.failed(document_id, FailureStage.CHUNK, exc)

        chunks = [await self._enrich_chunk(chunk) for chunk in chunks]

        written = 0
        for chunk in chunks:
            try:
                await self.writer.write(chunk)
            except ConfigurationError:
                raise
            except Exception as exc:
                logger.exception("Failed to write chunk %d of %s", chunk.index, document_id)
                return IngestionOutcome.failed(document_id, FailureStage.WRITE, exc, chunks_written=written)
            written += 1

        logger.info("Ingested %s: %d chunk(s)", document_id, written)
        return IngestionOutcome.success(document_id, written)

    async def _enrich_document(self, document: Document) -> Document:
        for enricher in self.document_enrichers:
            try:
                document = await enricher.process(document)
            except Exception:
                logger.warning(
                    "Document enricher %s failed on %s; skipping",
                    enricher.name,
                    document.id,
                    exc_info=True,
                )
        return document

    async def _enrich_chunk(self, chunk: Chunk) -> Chunk:
        for enricher in self.chunk_enrichers:
            try:
                chunk = await enricher.process(chunk)
            except Exception:
                logger.warning(
                    "Chunk enricher %s failed on %s#%d; skipping",
                    enricher.name,
                    chunk.document_id,
                    chunk.index,
                    exc_info=True,
                )
        return chunk
