"""
FAISS Vector Index

This module implements the catalog's vector index on top of FAISS and the
narrow async interface the rest of the tool depends on.

Key Properties
--------------
- Create-or-update schema definition, safe to repeat on every startup
- Insert-or-replace upsert keyed by document id, last write wins
- Cosine-similarity ranking (inner product over L2-normalized vectors)
- Optional persistence (schema + documents + FAISS index) per index name
- Strong validation of vector dimensionality against the schema
- Fully testable in memory when no storage directory is given
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import faiss
import numpy as np
from pydantic import ValidationError

from .models import (
    IndexSchema,
    QueryResult,
    ServiceDocument,
    PROJECTABLE_FIELDS,
    NAME_FIELD,
    DESCRIPTION_FIELD,
)
from ..core.errors import (
    VectorIndexError,
    IndexPersistenceError,
    SchemaMismatchError,
)

logger = logging.getLogger("svc.index")


# ---------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------

class VectorIndex(Protocol):
    """Operations the ingestion pipeline and query loop rely on."""

    async def define_schema(self, schema: IndexSchema) -> None: ...

    async def upsert(self, documents: Sequence[ServiceDocument]) -> int: ...

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        project_fields: Sequence[str],
    ) -> List[QueryResult]: ...


# ---------------------------------------------------------------------
# FAISS Index Wrapper
# ---------------------------------------------------------------------

class FaissIndex:
    """
    FAISS-backed catalog index keyed by document id.

    Documents are kept in insertion order; replacing an id keeps its
    position. The FAISS structure is rebuilt from the stored documents
    after every upsert, which suits catalogs of a few thousand entries.
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """
        Initialize an index wrapper.

        Parameters
        ----------
        storage_dir : Optional[str]
            Directory holding ``<name>.faiss`` and ``<name>.json``.
            When None the index lives in memory only.
        """
        self._storage_dir = Path(storage_dir) if storage_dir else None

        self._schema: Optional[IndexSchema] = None
        self._index: Optional[faiss.Index] = None
        self._documents: Dict[str, ServiceDocument] = {}
        self._positions: List[str] = []

        self._lock = RLock()

    @property
    def schema(self) -> Optional[IndexSchema]:
        return self._schema

    def __len__(self) -> int:
        return len(self._documents)

    def get(self, doc_id: str) -> Optional[ServiceDocument]:
        return self._documents.get(doc_id)

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _require_schema(self) -> IndexSchema:
        if self._schema is None:
            raise VectorIndexError("Index schema has not been defined.")
        return self._schema

    def _new_faiss_index(self, schema: IndexSchema) -> faiss.Index:
        algorithm = schema.algorithm
        if algorithm.kind == "exhaustive":
            return faiss.IndexFlatIP(schema.dimensions)

        index = faiss.IndexHNSWFlat(
            schema.dimensions,
            algorithm.m,
            faiss.METRIC_INNER_PRODUCT,
        )
        index.hnsw.efConstruction = algorithm.ef_construction
        index.hnsw.efSearch = algorithm.ef_search
        return index

    def _rebuild(self) -> None:
        schema = self._require_schema()
        index = self._new_faiss_index(schema)
        positions = list(self._documents)

        if positions:
            vectors = np.asarray(
                [self._documents[i].description_vector for i in positions],
                dtype="float32",
            )
            faiss.normalize_L2(vectors)
            try:
                index.add(vectors)
            except Exception as exc:
                raise VectorIndexError(
                    f"Failed to add vectors to FAISS: {type(exc).__name__}"
                ) from exc

        self._index = index
        self._positions = positions

    def _check_dimensions(self, vector: Sequence[float], label: str) -> None:
        expected = self._require_schema().dimensions
        if len(vector) != expected:
            raise SchemaMismatchError(
                f"{label} has {len(vector)} dimensions, index expects {expected}."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def define_schema(self, schema: IndexSchema) -> None:
        """
        Create the index, or update it to ``schema``.

        Re-applying an identical schema is a no-op. Changing the vector
        layout of an index that already holds documents is rejected.
        """
        with self._lock:
            current = self._schema
            if current is not None and self._documents:
                same_vectors = (
                    current.dimensions == schema.dimensions
                    and current.algorithm == schema.algorithm
                )
                if not same_vectors:
                    raise VectorIndexError(
                        f"Cannot change the vector field of populated index "
                        f"{current.name!r} ({len(self._documents)} documents)."
                    )

            self._schema = schema
            if current != schema or self._index is None:
                self._rebuild()
                logger.info(
                    "Defined index %r: %d dimensions, %s",
                    schema.name,
                    schema.dimensions,
                    schema.algorithm.kind,
                )

            self.save()

    async def upsert(self, documents: Sequence[ServiceDocument]) -> int:
        """
        Insert or replace ``documents`` by id, as one batch.

        The whole batch is validated before anything is written.

        Returns
        -------
        int
            Number of documents in the batch.
        """
        with self._lock:
            self._require_schema()
            if not documents:
                return 0

            for doc in documents:
                self._check_dimensions(
                    doc.description_vector,
                    f"Document {doc.id!r} vector",
                )

            previous = dict(self._documents)
            for doc in documents:
                self._documents[doc.id] = doc

            try:
                self._rebuild()
            except VectorIndexError:
                self._documents = previous
                self._rebuild()
                raise

            logger.info(
                "Upserted %d documents (%d stored)",
                len(documents),
                len(self._documents),
            )
            self.save()
            return len(documents)

    async def query(
        self,
        vector: Sequence[float],
        k: int = 3,
        project_fields: Sequence[str] = PROJECTABLE_FIELDS,
    ) -> List[QueryResult]:
        """
        Return up to ``k`` documents ranked by descending cosine similarity.
        """
        unknown = [f for f in project_fields if f not in PROJECTABLE_FIELDS]
        if unknown:
            raise VectorIndexError(f"Cannot project unknown fields: {unknown}")
        if k < 1:
            raise VectorIndexError(f"k must be at least 1, got {k}.")

        with self._lock:
            self._check_dimensions(vector, "Query vector")
            if self._index is None or not self._positions:
                return []

            q = np.asarray([vector], dtype="float32")
            faiss.normalize_L2(q)

            try:
                scores, idxs = self._index.search(q, min(k, len(self._positions)))
            except Exception as exc:
                raise VectorIndexError(
                    f"FAISS search failed: {type(exc).__name__}"
                ) from exc

            results: List[QueryResult] = []
            for score, idx in zip(scores[0], idxs[0]):
                idx = int(idx)
                if idx == -1:
                    continue

                doc = self._documents[self._positions[idx]]
                results.append(
                    QueryResult(
                        service_name=doc.service_name if NAME_FIELD in project_fields else None,
                        description=doc.description if DESCRIPTION_FIELD in project_fields else None,
                        score=float(score),
                    )
                )

            return results

    def get_stats(self) -> dict:
        """
        Return index statistics for diagnostics.
        """
        with self._lock:
            schema = self._schema
            return {
                "index_name": schema.name if schema else None,
                "dimensions": schema.dimensions if schema else None,
                "algorithm": schema.algorithm.kind if schema else None,
                "total_documents": len(self._documents),
                "total_vectors": self._index.ntotal if self._index else 0,
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _paths(self, name: str) -> Tuple[Path, Path]:
        return (
            self._storage_dir / f"{name}.faiss",
            self._storage_dir / f"{name}.json",
        )

    def save(self) -> None:
        """
        Persist the FAISS index and its metadata, if a directory is set.

        Each file is written to a temporary sibling and then moved into
        place.
        """
        with self._lock:
            if self._storage_dir is None or self._schema is None:
                return

            index_path, meta_path = self._paths(self._schema.name)

            try:
                self._storage_dir.mkdir(parents=True, exist_ok=True)

                tmp_index = index_path.with_suffix(".faiss.tmp")
                faiss.write_index(self._index, str(tmp_index))
                os.replace(tmp_index, index_path)
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to write FAISS index: {type(exc).__name__}"
                ) from exc

            meta = {
                "schema": self._schema.model_dump(),
                "documents": [doc.to_index_fields() for doc in self._documents.values()],
            }

            try:
                tmp_meta = meta_path.with_suffix(".json.tmp")
                with tmp_meta.open("w", encoding="utf-8") as f:
                    json.dump(meta, f)
                os.replace(tmp_meta, meta_path)
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to write index metadata: {type(exc).__name__}"
                ) from exc

    def load(self, name: str) -> bool:
        """
        Load the index called ``name`` from the storage directory.

        Returns
        -------
        bool
            True if a stored index was found and loaded.
        """
        with self._lock:
            if self._storage_dir is None:
                return False

            index_path, meta_path = self._paths(name)
            if not meta_path.exists():
                return False

            try:
                with meta_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)

                schema = IndexSchema.model_validate(data["schema"])
                documents = [
                    ServiceDocument.from_index_fields(d)
                    for d in data.get("documents", [])
                ]
            except (OSError, ValueError, KeyError, TypeError, ValidationError) as exc:
                raise IndexPersistenceError(
                    f"Failed to load index metadata: {type(exc).__name__}"
                ) from exc

            self._schema = schema
            self._documents = {doc.id: doc for doc in documents}

            index: Optional[faiss.Index] = None
            if index_path.exists():
                try:
                    index = faiss.read_index(str(index_path))
                except Exception as exc:
                    raise IndexPersistenceError(
                        f"Failed to read FAISS index: {type(exc).__name__}"
                    ) from exc

            if index is None or index.ntotal != len(self._documents) or index.d != schema.dimensions:
                logger.warning("Stored FAISS index for %r is stale; rebuilding", name)
                self._rebuild()
            else:
                self._index = index
                self._positions = list(self._documents)

            logger.info("Loaded index %r with %d documents", name, len(self._documents))
            return True
