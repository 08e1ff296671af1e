"""
Embeddings Package

Catalog models, the embedding client, the FAISS vector index and the
corpus ingestion pipeline.
"""

from .models import (
    ServiceRecord,
    ServiceDocument,
    IndexSchema,
    QueryResult,
    build_index_schema,
    derive_document_id,
)
from .embedder import Embedder
from .index import VectorIndex, FaissIndex
from .ingest import IngestionPipeline, IngestionReport, load_corpus

__all__ = [
    "ServiceRecord",
    "ServiceDocument",
    "IndexSchema",
    "QueryResult",
    "build_index_schema",
    "derive_document_id",
    "Embedder",
    "VectorIndex",
    "FaissIndex",
    "IngestionPipeline",
    "IngestionReport",
    "load_corpus",
]
