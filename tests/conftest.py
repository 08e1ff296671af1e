import pytest
from typing import List

from service_search.embeddings.index import FaissIndex
from service_search.embeddings.models import ServiceDocument, build_index_schema

DIMS = 4


class KeywordEmbedder:
    """
    Deterministic stand-in for the embedding client.

    Each keyword found in the text adds weight to one axis, so texts about
    the same topic end up close together.
    """

    AXES = {
        "database": 0,
        "function": 1,
        "container": 2,
        "monitor": 3,
    }

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        vector = [0.01] * DIMS
        lowered = text.lower()
        for word, axis in self.AXES.items():
            if word in lowered:
                vector[axis] += 1.0
        return vector


def make_doc(doc_id: str, vector: List[float], description: str = "desc") -> ServiceDocument:
    return ServiceDocument(
        id=doc_id,
        service_name=doc_id,
        description=description,
        description_vector=vector,
    )


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def schema():
    return build_index_schema("test-index", DIMS, algorithm="exhaustive")


@pytest.fixture
async def index(schema):
    idx = FaissIndex()
    await idx.define_schema(schema)
    return idx


@pytest.fixture
def corpus_file(tmp_path):
    def _write(content: str):
        path = tmp_path / "services.json"
        path.write_text(content, encoding="utf-8")
        return path
    return _write
