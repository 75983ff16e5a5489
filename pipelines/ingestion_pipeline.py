"""KFP v2 pipeline: document ingestion into the vector store.

A single ``ingest_documents`` step runs the full read → chunk → embed →
store sequence, so one document's chunks are never split across
containers.

Compile
-------
    python -m pipelines.ingestion_pipeline --compile
"""

from kfp import compiler, dsl

from pipelines.components.ingest import ingest_documents


# ──────────────────────────────────────────────────────────────────────
# Pipeline definition
# ──────────────────────────────────────────────────────────────────────


@dsl.pipeline(
    name="rag-ingestion-pipeline",
    description=(
        "Document ingestion: read files → chunk by strategy → "
        "embed → store chunks in Chroma."
    ),
)
def ingestion_pipeline(
    # ── Source ──────────────────────────────────────────────────────
    source_path: str = "/data/documents",
    file_pattern: str = "*.md",
    # ── Chunking ───────────────────────────────────────────────────
    chunking_strategy: str = "SemanticAware",
    max_tokens_per_chunk: int = 2000,
    overlap_tokens: int = 0,
    # ── Vector DB ──────────────────────────────────────────────────
    store_backend: str = "chroma",
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "chunks",
    # ── Enrichment ─────────────────────────────────────────────────
    enable_enrichment: bool = False,
    fail_on_error: bool = False,
) -> None:
    """Ingest every file matching *file_pattern* under *source_path*.

    Parameters
    ----------
    source_path:
        Directory of source documents.
    file_pattern:
        Glob selecting the files to ingest.
    chunking_strategy:
        ``HeaderBased`` | ``SectionBased`` | ``SemanticAware``.
    max_tokens_per_chunk / overlap_tokens:
        Chunk size limits in tokens.
    store_backend:
        ``chroma`` | ``memory``.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    enable_enrichment:
        Whether to run the LLM enrichers.
    fail_on_error:
        Fail the run when any document fails.
    """
    ingest_documents(
        source_path=source_path,
        file_pattern=file_pattern,
        chunking_strategy=chunking_strategy,
        max_tokens_per_chunk=max_tokens_per_chunk,
        overlap_tokens=overlap_tokens,
        store_backend=store_backend,
        chroma_host=chroma_host,
        chroma_port=chroma_port,
        collection_name=collection_name,
        enable_enrichment=enable_enrichment,
        fail_on_error=fail_on_error,
    )


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="RAG ingestion pipeline")
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Compile pipeline to YAML",
    )
    parser.add_argument(
        "--output",
        default="pipelines/compiled/ingestion_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(ingestion_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")
