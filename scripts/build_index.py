import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from service_search.config import get_settings
from service_search.embeddings.embedder import Embedder
from service_search.embeddings.index import FaissIndex
from service_search.embeddings.ingest import IngestionPipeline, load_corpus
from service_search.embeddings.models import build_index_schema


async def main():
    settings = get_settings()
    if not settings.index_dir:
        print("INDEX_DIR is not set; nothing would be persisted.")
        return

    print("Initializing clients...")
    embedder = Embedder()
    index = FaissIndex(settings.index_dir)
    index.load(settings.index_name)

    # 1. Schema
    print(f"Defining index {settings.index_name!r}...")
    await index.define_schema(build_index_schema(
        name=settings.index_name,
        dimensions=settings.embedding_dimensions,
        algorithm=settings.index_algorithm,
    ))

    # 2. Corpus
    records = load_corpus(settings.corpus_path)
    print(f"Found {len(records)} services in {settings.corpus_path}.")

    # 3. Embed and upsert (one batch; any failure aborts before writing)
    report = await IngestionPipeline(embedder, index).ingest(records)

    stats = index.get_stats()
    print(f"Upserted {report.upserted} documents; index now holds {stats['total_documents']}.")
    print("Done! Index updated.")

if __name__ == "__main__":
    asyncio.run(main())
