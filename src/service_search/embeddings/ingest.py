"""
Corpus Ingestion

Reads the service catalog written by the generator tool, embeds each
description and writes the resulting documents to the index in a single
upsert. Nothing is written unless every record embedded successfully.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, NamedTuple, Union

from pydantic import TypeAdapter, ValidationError

from .embedder import Embedder
from .index import VectorIndex
from .models import ServiceDocument, ServiceRecord
from ..core.errors import CorpusError

logger = logging.getLogger("svc.ingest")

_corpus_adapter = TypeAdapter(List[ServiceRecord])


class IngestionReport(NamedTuple):
    records: int
    upserted: int
    document_ids: List[str]


def load_corpus(path: Union[str, Path]) -> List[ServiceRecord]:
    """
    Read and decode the corpus file.

    The file must hold a JSON array of ``{"serviceName", "description"}``
    objects.

    Raises
    ------
    CorpusError
        If the file is missing, unreadable, or does not decode.
    """
    corpus_path = Path(path)
    try:
        raw = corpus_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CorpusError(f"Cannot read corpus file {str(corpus_path)!r}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise CorpusError(f"Corpus file {str(corpus_path)!r} is not valid UTF-8: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorpusError(f"Corpus file {str(corpus_path)!r} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise CorpusError(
            f"Corpus file {str(corpus_path)!r} must contain a JSON array, "
            f"got {type(data).__name__}."
        )

    try:
        records = _corpus_adapter.validate_python(data)
    except ValidationError as exc:
        raise CorpusError(
            f"Corpus file {str(corpus_path)!r} has invalid records: "
            f"{exc.error_count()} error(s)"
        ) from exc

    logger.info("Loaded %d records from %s", len(records), corpus_path)
    return records


class IngestionPipeline:
    """
    Embed every corpus record and upsert the whole batch once.
    """

    def __init__(self, embedder: Embedder, index: VectorIndex) -> None:
        self._embedder = embedder
        self._index = index

    async def ingest(self, records: List[ServiceRecord]) -> IngestionReport:
        """
        Embed ``records`` in order and upsert them as one batch.

        An embedding failure propagates before the upsert, so a failed run
        writes nothing.
        """
        documents: List[ServiceDocument] = []

        for i, record in enumerate(records):
            logger.info(
                "Embedding (%d/%d): %s",
                i + 1,
                len(records),
                record.service_name,
            )
            vector = await self._embedder.embed(record.description)
            documents.append(ServiceDocument.from_record(record, vector))

        upserted = await self._index.upsert(documents)

        ids = list(dict.fromkeys(doc.id for doc in documents))
        if len(ids) != len(documents):
            logger.warning(
                "%d records share a document id with a later record and were replaced",
                len(documents) - len(ids),
            )

        return IngestionReport(
            records=len(records),
            upserted=upserted,
            document_ids=ids,
        )

    async def run(self, corpus_path: Union[str, Path]) -> IngestionReport:
        """Load the corpus at ``corpus_path`` and ingest it."""
        records = load_corpus(corpus_path)
        return await self.ingest(records)
