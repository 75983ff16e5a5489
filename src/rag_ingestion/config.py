"""Pipeline configuration loaded from environment / ``.env`` file.

The :class:`Settings` object is built once by an entry point and passed
explicitly into :class:`~rag_ingestion.ingestion.pipeline.IngestionPipeline`
and the writer factory.  Core modules never read the environment themselves.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rag_ingestion.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ChunkingStrategy(str, Enum):
    """Chunker selection tag."""

    HEADER_BASED = "HeaderBased"
    SECTION_BASED = "SectionBased"
    SEMANTIC_AWARE = "SemanticAware"

    @classmethod
    def parse(cls, value: Any) -> ChunkingStrategy:
        """Case-insensitive lookup by value or member name."""
        if isinstance(value, cls):
            return value
        normalised = str(value).strip().replace("_", "").replace("-", "").lower()
        for member in cls:
            if normalised in (member.value.lower(), member.name.replace("_", "").lower()):
                return member
        raise ConfigurationError(
            f"Unknown chunking strategy: {value!r}",
            details={"allowed": [m.value for m in cls]},
        )


class Settings(BaseSettings):
    """Immutable pipeline settings, populated from env vars or .env file."""

    # Embedding (Azure OpenAI when an endpoint is set, HuggingFace otherwise)
    azure_openai_endpoint: str = Field(default="", description="Azure OpenAI endpoint URL")
    azure_openai_api_key: str = Field(default="", description="Azure OpenAI API key")
    azure_openai_api_version: str = "2024-06-01"
    embedding_deployment_name: str = Field(
        default="text-embedding-3-small",
        description="Azure deployment used for embeddings",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="HuggingFace model used when no Azure endpoint is configured",
    )
    embedding_dimension: int = Field(default=1536, gt=0)

    # Chunking
    tokenizer_model: str = "gpt-4"
    max_tokens_per_chunk: int = 2000
    overlap_tokens: int = 0
    chunking_strategy: ChunkingStrategy = ChunkingStrategy.SEMANTIC_AWARE

    # Vector store
    store_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    database_name: str = "default_database"
    collection_name: str = "chunks"

    # Enrichment
    enable_enrichment: bool = False
    openai_api_key: str = Field(default="", description="OpenAI key used by the enrichers without Azure")
    chat_deployment_name: str = Field(
        default="gpt-4o-mini",
        description="Chat deployment / model used by the LLM enrichers",
    )
    enrichment_max_tokens: int = 4096

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("chunking_strategy", mode="before")
    @classmethod
    def _parse_strategy(cls, value: Any) -> ChunkingStrategy:
        try:
            return ChunkingStrategy.parse(value)
        except ConfigurationError as exc:
            # pydantic only wraps ValueError / AssertionError
            raise ValueError(str(exc)) from exc

    @model_validator(mode="after")
    def _check_token_limits(self) -> Settings:
        if self.max_tokens_per_chunk <= 0:
            raise ValueError("max_tokens_per_chunk must be positive")
        if not 0 <= self.overlap_tokens < self.max_tokens_per_chunk:
            raise ValueError(
                f"overlap_tokens ({self.overlap_tokens}) must be >= 0 and "
                f"< max_tokens_per_chunk ({self.max_tokens_per_chunk})"
            )
        return self

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_openai_endpoint)

    def masked(self) -> dict[str, Any]:
        """Return a display dict with credentials masked."""
        data = self.model_dump(mode="json")
        for key in ("azure_openai_api_key", "openai_api_key"):
            data[key] = _mask(data[key])
        return data


def _mask(value: str) -> str:
    if not value:
        return "NOT SET"
    if len(value) <= 6:
        return "***"
    return f"{value[:3]}...{value[-3:]}"


def load_settings(**overrides: Any) -> Settings:
    """Build :class:`Settings`, surfacing validation problems as
    :class:`ConfigurationError`."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    """Cached settings for entry points (CLI, KFP component)."""
    return load_settings()


ENV_TEMPLATE = """\
# Azure OpenAI
AZURE_OPENAI_ENDPOINT=https://<your-resource>.openai.azure.com/
AZURE_OPENAI_API_KEY=<your-api-key>
EMBEDDING_DEPLOYMENT_NAME=text-embedding-3-small
CHAT_DEPLOYMENT_NAME=gpt-4o-mini
TOKENIZER_MODEL=gpt-4

# Vector store
STORE_BACKEND=chroma
CHROMA_HOST=localhost
CHROMA_PORT=8000
DATABASE_NAME=default_database
COLLECTION_NAME=chunks

# Chunking
CHUNKING_STRATEGY=SemanticAware
MAX_TOKENS_PER_CHUNK=2000
OVERLAP_TOKENS=0

# Embedding
EMBEDDING_DIMENSION=1536

# Enrichment
ENABLE_ENRICHMENT=false
OPENAI_API_KEY=
"""


def write_env_template(path: str | Path = ".env.template") -> Path:
    """Write a commented ``.env`` template and return its path."""
    target = Path(path)
    target.write_text(ENV_TEMPLATE, encoding="utf-8")
    logger.info("Wrote environment template to %s", target)
    return target
