"""
Ingestion: document reading, chunking, enrichment, and the orchestrating
pipeline that writes embedded chunks through the store writer.

This module is responsible for the ETL-like flow that converts raw files
(Markdown, plain text, PDF) into bounded-size chunks and hands each one to
:class:`~rag_ingestion.storage.base.VectorStoreWriter`.
"""
