"""Domain models flowing through the ingestion stages."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Document(BaseModel):
    """A normalised input document produced by a reader.

    Attributes
    ----------
    id:
        Document identifier, derived from the source file name.
    content:
        Format-agnostic text of the whole document.
    metadata:
        Free-form reader metadata (source path, content type, …).
    pages:
        Page texts when the source format has page boundaries (PDF).
        Empty for formats without pages.
    """

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    pages: list[str] = Field(default_factory=list)


class Chunk(BaseModel):
    """A bounded-size span of a document, the unit of embedding."""

    document_id: str
    index: int = Field(ge=0)
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class FailureStage(str, Enum):
    """Stage at which a document failed."""

    READ = "read"
    CHUNK = "chunk"
    WRITE = "write"


class IngestionFailure(BaseModel):
    """Why a document failed."""

    stage: FailureStage
    error_type: str
    message: str


class IngestionOutcome(BaseModel):
    """Result of running one document through the pipeline."""

    document_id: str
    chunks_written: int = 0
    failure: IngestionFailure | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, document_id: str, chunks_written: int) -> IngestionOutcome:
        return cls(document_id=document_id, chunks_written=chunks_written)

    @classmethod
    def failed(
        cls,
        document_id: str,
        stage: FailureStage,
        error: BaseException,
        chunks_written: int = 0,
    ) -> IngestionOutcome:
        return cls(
            document_id=document_id,
            chunks_written=chunks_written,
            failure=IngestionFailure(
                stage=stage,
                error_type=type(error).__name__,
                message=str(error),
            ),
        )

    def __str__(self) -> str:  # noqa: D105
        if self.succeeded:
            return f"{self.document_id}: ok ({self.chunks_written} chunks)"
        assert self.failure is not None
        return f"{self.document_id}: failed at {self.failure.stage.value} ({self.failure.error_type}: {self.failure.message})"
