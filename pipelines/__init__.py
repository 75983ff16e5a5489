"""
Pipelines: Kubeflow Pipelines (KFP v2) definitions for document ingestion.

The component is a self-contained Python function decorated with
``@kfp.dsl.component`` so it can run in its own container with the
``rag-ingestion`` package installed.
"""
