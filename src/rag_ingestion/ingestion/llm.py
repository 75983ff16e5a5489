"""Chat model initialisation for the enrichers, the single place to swap providers.

Supports two modes:

1. **Azure OpenAI** (default when ``AZURE_OPENAI_ENDPOINT`` is set): the
   chat deployment named by ``CHAT_DEPLOYMENT_NAME`` on the same resource
   used for embeddings.
2. **OpenAI cloud**: set ``OPENAI_API_KEY``; ``CHAT_DEPLOYMENT_NAME`` is used
   as the model name.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

    from rag_ingestion.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings, temperature: float = 0.0) -> BaseChatModel:
    """Return the configured chat model.

    Output is capped at ``settings.enrichment_max_tokens`` so a runaway
    enrichment cannot stall a document.
    """
    if settings.uses_azure:
        from langchain_openai import AzureChatOpenAI

        logger.info("Using Azure OpenAI chat deployment: %s", settings.chat_deployment_name)
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
            azure_deployment=settings.chat_deployment_name,
            temperature=temperature,
            max_tokens=settings.enrichment_max_tokens,
        )

    from langchain_openai import ChatOpenAI

    logger.info("Using OpenAI chat model: %s", settings.chat_deployment_name)
    return ChatOpenAI(
        model=settings.chat_deployment_name,
        api_key=settings.openai_api_key or None,
        temperature=temperature,
        max_tokens=settings.enrichment_max_tokens,
    )
