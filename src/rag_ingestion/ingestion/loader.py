"""Document readers: turn raw file bytes into a normalised :class:`Document`.

Readers are selected by file suffix through :data:`READER_REGISTRY`.
Parsing runs in a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from rag_ingestion.exceptions import ReadError
from rag_ingestion.ingestion.models import Document

logger = logging.getLogger(__name__)

class DocumentReader(ABC):
    """Reader contract: bytes + file name → :class:`Document`."""

    content_type: str = "application/octet-stream"

    async def read(self, stream: BinaryIO, filename: str) -> Document:
        """Parse *stream* into a document whose id is *filename*.

        Raises
        ------
        ReadError
            When the input cannot be parsed.
        """
        try:
            return await asyncio.to_thread(self._parse, stream, filename)
        except ReadError:
            raise
        except Exception as exc:
            raise ReadError(
                f"Could not read {filename}: {exc}",
                details={"document_id": filename, "reader": type(self).__name__},
            ) from exc

    @abstractmethod
    def _parse(self, stream: BinaryIO, filename: str) -> Document:
        ...


class TextDocumentReader(DocumentReader):
    """Plain-text and Markdown reader (UTF-8)."""

    content_type = "text/markdown"

    def _parse(self, stream: BinaryIO, filename: str) -> Document:
        try:
            text = stream.read().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ReadError(f"{filename} is not valid UTF-8: {exc}") from exc
        text = _normalize_whitespace(text)
        return Document(
            id=filename,
            content=text,
            metadata={"source": filename, "content_type": self.content_type},
        )


class PdfDocumentReader(DocumentReader):
    """PDF reader built on ``pypdf``; keeps page boundaries."""

    content_type = "application/pdf"

    def _parse(self, stream: BinaryIO, filename: str) -> Document:
        try:
            reader = PdfReader(stream)
            pages = [_normalize_whitespace(page.extract_text() or "") for page in reader.pages]
        except PyPdfError as exc:
            raise ReadError(f"Could not parse PDF {filename}: {exc}") from exc
        return Document(
            id=filename,
            content="\n\n".join(p for p in pages if p),
            metadata={
                "source": filename,
                "content_type": self.content_type,
                "page_count": len(pages),
            },
            pages=pages,
        )


READER_REGISTRY: dict[str, type[DocumentReader]] = {
    ".md": TextDocumentReader,
    ".markdown": TextDocumentReader,
    ".txt": TextDocumentReader,
    ".pdf": PdfDocumentReader,
}


def get_reader(filename: str | Path) -> DocumentReader:
    """Return the reader registered for the suffix of *filename*."""
    suffix = Path(filename).suffix.lower()
    reader_cls = READER_REGISTRY.get(suffix)
    if reader_cls is None:
        raise ReadError(
            f"Unsupported file type: {suffix or '<none>'}",
            details={"document_id": Path(filename).name},
        )
    return reader_cls()


async def read_file(path: str | Path) -> Document:
    """Read *path* from disk with the matching reader."""
    path = Path(path)
    reader = get_reader(path)
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise ReadError(f"Could not open {path}: {exc}", details={"document_id": path.name}) from exc
    logger.debug("Read %d bytes from %s", len(data), path)
    return await reader.read(io.BytesIO(data), path.name)


def _normalize_whitespace(text: str) -> str:
    """Collapse blank lines and inner runs of spaces or tabs; leading indentation is kept."""
    text = text.replace("\r\n", "\n").replace("\x00", "")
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    text = re.sub(r"(?<=\S)[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip("\n")
