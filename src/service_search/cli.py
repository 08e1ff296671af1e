"""
Command Line Entry Point

Runs the whole tool in a fixed order:

1. Define (create or update) the index schema
2. Ingest the corpus file into the index
3. Answer queries interactively until the user exits

The order is plain program sequencing; nothing else guarantees that the
index is populated before the first query.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from .config import Settings, get_settings
from .core.errors import ServiceSearchError, report_fatal
from .core.logging import configure_logging
from .embeddings.embedder import Embedder
from .embeddings.index import FaissIndex
from .embeddings.ingest import IngestionPipeline
from .embeddings.models import build_index_schema
from .search.loop import QueryLoop

logger = logging.getLogger("svc.cli")


async def run(settings: Settings) -> int:
    """
    Define the index, ingest the corpus, then run the query loop.

    Returns
    -------
    int
        Number of queries answered.
    """
    embedder = Embedder()
    index = FaissIndex(settings.index_dir)
    index.load(settings.index_name)

    schema = build_index_schema(
        name=settings.index_name,
        dimensions=settings.embedding_dimensions,
        algorithm=settings.index_algorithm,
    )
    await index.define_schema(schema)

    report = await IngestionPipeline(embedder, index).run(settings.corpus_path)
    logger.info(
        "Ingested %d records into %r (%d distinct ids)",
        report.records,
        settings.index_name,
        len(report.document_ids),
    )

    return await QueryLoop(embedder, index, top_k=settings.search_top_k).run()


def main() -> int:
    """Console script entry point. Takes no options."""
    configure_logging()

    try:
        settings = get_settings()
        configure_logging(settings.log_level)
        asyncio.run(run(settings))
    except ServiceSearchError as exc:
        report_fatal(exc)
        return 1
    except KeyboardInterrupt:
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
