"""
Ingestion Tests

Corpus decoding, batch upsert behaviour and the end-to-end catalog
scenario from ingestion to query.
"""

import json
from unittest.mock import AsyncMock

import pytest

from service_search.core.errors import CorpusError, EmbeddingError
from service_search.embeddings.embedder import Embedder
from service_search.embeddings.index import FaissIndex
from service_search.embeddings.ingest import IngestionPipeline, load_corpus
from service_search.search.loop import QueryLoop

COSMOS = {
    "serviceName": "CosmosDB",
    "description": "A globally distributed multi-model database.",
}


class TestLoadCorpus:

    def test_reads_records_in_file_order(self, corpus_file):
        path = corpus_file(json.dumps([
            COSMOS,
            {"serviceName": "Azure Functions", "description": "Serverless functions."},
        ]))

        records = load_corpus(path)

        assert [r.service_name for r in records] == ["CosmosDB", "Azure Functions"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(CorpusError):
            load_corpus(tmp_path / "missing.json")

    def test_invalid_json(self, corpus_file):
        with pytest.raises(CorpusError):
            load_corpus(corpus_file("[{"))

    def test_not_an_array(self, corpus_file):
        with pytest.raises(CorpusError):
            load_corpus(corpus_file(json.dumps(COSMOS)))

    def test_invalid_record(self, corpus_file):
        with pytest.raises(CorpusError):
            load_corpus(corpus_file(json.dumps([{"serviceName": "CosmosDB"}])))

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "services.json"
        path.write_bytes(b'[{"serviceName": "\xff\xfe", "description": "x"}]')

        with pytest.raises(CorpusError):
            load_corpus(path)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_name_without_id_characters(self, corpus_file, name):
        path = corpus_file(json.dumps([{"serviceName": name, "description": "a database"}]))

        with pytest.raises(CorpusError):
            load_corpus(path)

    def test_non_string_name(self, corpus_file):
        path = corpus_file(json.dumps([{"serviceName": 42, "description": "a database"}]))

        with pytest.raises(CorpusError):
            load_corpus(path)


class TestIngestionPipeline:

    @pytest.mark.asyncio
    async def test_single_batch_upsert(self, corpus_file, embedder):
        path = corpus_file(json.dumps([
            COSMOS,
            {"serviceName": "Azure Functions", "description": "Run a function on demand."},
        ]))
        index = AsyncMock(spec=FaissIndex)
        index.upsert.return_value = 2

        report = await IngestionPipeline(embedder, index).run(path)

        index.upsert.assert_awaited_once()
        batch = index.upsert.await_args.args[0]
        assert [d.id for d in batch] == ["CosmosDB", "AzureFunctions"]
        assert embedder.calls == [COSMOS["description"], "Run a function on demand."]
        assert report.records == 2
        assert report.upserted == 2
        assert report.document_ids == ["CosmosDB", "AzureFunctions"]

    @pytest.mark.asyncio
    async def test_embedding_failure_aborts_before_upsert(self, corpus_file):
        path = corpus_file(json.dumps([COSMOS, COSMOS]))
        failing = AsyncMock(spec=Embedder)
        failing.embed.side_effect = [[1.0, 0.0, 0.0, 0.0], EmbeddingError("quota")]
        index = AsyncMock(spec=FaissIndex)

        with pytest.raises(EmbeddingError):
            await IngestionPipeline(failing, index).run(path)

        index.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_corpus_error_before_any_network_call(self, tmp_path):
        embedder = AsyncMock(spec=Embedder)
        index = AsyncMock(spec=FaissIndex)

        with pytest.raises(CorpusError):
            await IngestionPipeline(embedder, index).run(tmp_path / "missing.json")

        embedder.embed.assert_not_called()
        index.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_name_rejected_before_embedding(self, corpus_file, embedder):
        path = corpus_file(json.dumps([
            COSMOS,
            {"serviceName": "   ", "description": "a database"},
        ]))
        index = AsyncMock(spec=FaissIndex)

        with pytest.raises(CorpusError):
            await IngestionPipeline(embedder, index).run(path)

        assert embedder.calls == []
        index.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_names_collide(self, corpus_file, embedder, index):
        path = corpus_file(json.dumps([
            {"serviceName": "App Service", "description": "first"},
            {"serviceName": "AppService", "description": "second"},
        ]))

        report = await IngestionPipeline(embedder, index).run(path)

        assert report.document_ids == ["AppService"]
        assert len(index) == 1
        assert index.get("AppService").description == "second"


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_cosmos_scenario(self, corpus_file, embedder, index):
        path = corpus_file(json.dumps([COSMOS]))

        report = await IngestionPipeline(embedder, index).run(path)

        assert report.document_ids == ["CosmosDB"]
        assert index.get("CosmosDB").service_name == "CosmosDB"

        loop = QueryLoop(embedder, index, read_line=lambda _: "")
        results = await loop.search("I need a globally distributed database")

        assert [r.service_name for r in results] == ["CosmosDB"]

    @pytest.mark.asyncio
    async def test_ranked_catalog(self, corpus_file, embedder, index):
        path = corpus_file(json.dumps([
            {"serviceName": "Azure Functions", "description": "Run a function without servers."},
            COSMOS,
            {"serviceName": "Azure Monitor", "description": "Monitor your applications."},
        ]))
        await IngestionPipeline(embedder, index).run(path)

        loop = QueryLoop(embedder, index, read_line=lambda _: "")
        results = await loop.search("which database should I use")

        assert len(results) == 3
        assert results[0].service_name == "CosmosDB"

    @pytest.mark.asyncio
    async def test_empty_corpus(self, corpus_file, embedder, index):
        path = corpus_file("[]")

        report = await IngestionPipeline(embedder, index).run(path)

        assert report.upserted == 0
        assert embedder.calls == []
        assert index.schema is not None
        assert await index.query([1.0, 0.0, 0.0, 0.0], k=3) == []
