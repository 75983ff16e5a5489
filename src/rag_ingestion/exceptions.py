"""Exception taxonomy for the ingestion pipeline.

Precondition problems (:class:`ConfigurationError`, :class:`NotFoundError`)
are raised straight to the caller.  Operational problems raised while a
document is in flight (:class:`ReadError`, :class:`ChunkingError`,
:class:`EmbeddingError`, :class:`StoreError`) are caught at the document
boundary and turned into a failed :class:`~rag_ingestion.ingestion.models.IngestionOutcome`.
:class:`EnrichmentError` is always logged and skipped.
"""

from __future__ import annotations

from typing import Any


class IngestionError(Exception):
    """Base class for every error raised by this package.

    Parameters
    ----------
    message:
        Human-readable description.
    details:
        Optional structured context (document id, chunk index, …) that
        ends up in log records and failed outcomes.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(IngestionError):
    """Bad or missing setting, unknown chunking strategy, dimension mismatch."""


class NotFoundError(IngestionError, FileNotFoundError):
    """An input file or directory does not exist."""


class ReadError(IngestionError):
    """A reader could not turn raw bytes into a document."""


class ChunkingError(IngestionError):
    """A document could not be cut within the token limit."""


class EmbeddingError(IngestionError):
    """Embedding generation failed."""


class StoreError(IngestionError):
    """The persistent chunk store rejected or could not serve a request."""


class EnrichmentError(IngestionError):
    """A document or chunk enricher failed.  Never fatal."""
