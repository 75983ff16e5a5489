"""Embedding capability, the only place chunk text becomes a vector."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rag_ingestion.exceptions import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_ingestion.config import Settings

logger = logging.getLogger(__name__)


class Embedder(ABC):
    """Turns text into a fixed-length float vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises
        ------
        EmbeddingError
            When the underlying model or service fails.
        """
        ...

    async def aclose(self) -> None:
        """Release client resources.  Most embedders hold none."""


class LangChainEmbedder(Embedder):
    """Adapter around any LangChain :class:`~langchain_core.embeddings.Embeddings`."""

    def __init__(self, embeddings: Embeddings) -> None:
        self._embeddings = embeddings

    async def embed(self, text: str) -> list[float]:
        try:
            vector = await self._embeddings.aembed_query(text)
        except Exception as exc:
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc
        return [float(v) for v in vector]


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured LangChain embeddings.

    Azure OpenAI when ``azure_openai_endpoint`` is set, otherwise the
    sentence-transformer named by ``embedding_model``.
    """
    if settings.uses_azure:
        from langchain_openai import AzureOpenAIEmbeddings

        logger.info("Using Azure OpenAI embeddings: %s", settings.embedding_deployment_name)
        return AzureOpenAIEmbeddings(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
            azure_deployment=settings.embedding_deployment_name,
            dimensions=settings.embedding_dimension,
        )

    from langchain_huggingface import HuggingFaceEmbeddings

    logger.info("Using HuggingFace embeddings: %s", settings.embedding_model)
    return HuggingFaceEmbeddings(model_name=settings.embedding_model)


def get_embedder(settings: Settings) -> Embedder:
    return LangChainEmbedder(get_embedding_function(settings))
