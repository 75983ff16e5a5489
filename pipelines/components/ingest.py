"""KFP v2 component: ingest a directory of documents into the vector store.

Runs :class:`rag_ingestion.ingestion.pipeline.IngestionPipeline` inside the
component container.  Every document yields exactly one outcome; per-document
failures are reported through the Metrics artifact instead of failing the
step.  The step fails only on configuration errors or when
``fail_on_error`` is set and at least one document failed.

Container image
---------------
The component imports ``rag_ingestion``, which is not published to a package
index, so it runs on an image with this project installed rather than on a
bare ``python:3.11-slim`` with ``packages_to_install``.  Build it from the
repository root and point ``RAG_INGESTION_IMAGE`` at the pushed tag before
compiling the pipeline::

    docker build -t registry.example.com/rag-ingestion:0.1.0 .
    docker push registry.example.com/rag-ingestion:0.1.0
    RAG_INGESTION_IMAGE=registry.example.com/rag-ingestion:0.1.0 \
        python -m pipelines.ingestion_pipeline --compile

Local testing
-------------
    from pipelines.components.ingest import ingest_documents
    ingest_documents.python_func(
        source_path="/data/documents",
        metrics=_FakeArtifact("/tmp/metrics"),
        store_backend="memory",
    )
"""

import os

from kfp import dsl

INGESTION_IMAGE = os.environ.get("RAG_INGESTION_IMAGE", "rag-ingestion:0.1.0")


@dsl.component(base_image=INGESTION_IMAGE)
def ingest_documents(
    source_path: str,
    metrics: dsl.Output[dsl.Metrics],
    file_pattern: str = "*.md",
    chunking_strategy: str = "SemanticAware",
    max_tokens_per_chunk: int = 2000,
    overlap_tokens: int = 0,
    store_backend: str = "chroma",
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "chunks",
    enable_enrichment: bool = False,
    fail_on_error: bool = False,
) -> str:
    """Read, chunk, embed, and store every matching file in *source_path*.

    Parameters
    ----------
    source_path:
        Directory of source documents (mounted volume).
    metrics:
        Output Metrics artifact with per-run ingestion statistics.
    file_pattern:
        Glob selecting files inside *source_path*.
    chunking_strategy:
        ``HeaderBased`` | ``SectionBased`` | ``SemanticAware``.
    max_tokens_per_chunk / overlap_tokens:
        Token limits passed to the chunker.
    store_backend:
        ``chroma`` | ``memory``.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    enable_enrichment:
        Run the LLM enrichers (requires Azure OpenAI / OpenAI credentials
        in the container environment).
    fail_on_error:
        Raise after the run when any document failed.

    Returns
    -------
    str
        Summary, e.g. ``"Ingested 3/4 documents (42 chunks)"``.
    """
    import asyncio
    import logging

    from rag_ingestion.config import load_settings
    from rag_ingestion.ingestion.pipeline import IngestionPipeline

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("ingest_documents")

    settings = load_settings(
        chunking_strategy=chunking_strategy,
        max_tokens_per_chunk=max_tokens_per_chunk,
        overlap_tokens=overlap_tokens,
        store_backend=store_backend,
        chroma_host=chroma_host,
        chroma_port=chroma_port,
        collection_name=collection_name,
        enable_enrichment=enable_enrichment,
    )

    async def _run():
        async with IngestionPipeline.from_settings(settings) as pipeline:
            return await pipeline.process_documents(source_path, file_pattern)

    outcomes = asyncio.run(_run())

    succeeded = [o for o in outcomes if o.succeeded]
    failed = [o for o in outcomes if not o.succeeded]
    chunks_written = sum(o.chunks_written for o in outcomes)

    # KFP Metrics
    metrics.log_metric("documents_total", len(outcomes))
    metrics.log_metric("documents_succeeded", len(succeeded))
    metrics.log_metric("documents_failed", len(failed))
    metrics.log_metric("chunks_written", chunks_written)
    metrics.log_metric("chunking_strategy", settings.chunking_strategy.value)

    msg = f"Ingested {len(succeeded)}/{len(outcomes)} documents ({chunks_written} chunks)"
    log.info(msg)

    if failed and fail_on_error:
        raise RuntimeError(f"{msg}; failed: {', '.join(o.document_id for o in failed)}")
    return msg
