"""
Shared fixtures: fake Ollama clients, a temporary LanceDB store and SQLite repositories.

The fake embedding client maps text onto a small keyword space so similarity
search is meaningful without a running model.
"""

import pytest

from greyseal.indexing.chunker import WordChunker
from greyseal.indexing.embedder import Embedder
from greyseal.repository import create_db_engine
from greyseal.storage.analytical import LanceDBVectorStore

KEYWORDS = ["sky", "blue", "grass", "green", "ocean", "water", "fire", "red"]
DIMENSIONS = len(KEYWORDS)


def keyword_vector(text):
    words = [w.strip(".,?!:;").lower() for w in text.split()]
    return [words.count(k) + 0.01 for k in KEYWORDS]


class FakeEmbeddingClient:
    """Stands in for ollama.Client's embedding endpoints

    The legacy `embeddings` endpoint returns unnormalised vectors that differ
    from `embed`, as Ollama's /api/embeddings and /api/embed do.
    """

    def __init__(self, fail=False, fail_batch=False, dimensions=DIMENSIONS):
        self.fail = fail
        self.fail_batch = fail_batch
        self.dimensions = dimensions
        self.single_calls = 0
        self.batch_calls = 0
        self.legacy_calls = 0

    def _vector(self, text):
        vector = keyword_vector(text)
        if self.dimensions != DIMENSIONS:
            vector = (vector * self.dimensions)[:self.dimensions]
        return vector

    def embeddings(self, model, prompt):
        self.legacy_calls += 1
        if self.fail:
            raise ConnectionError("ollama is down")
        return {"embedding": [v * 3.0 + 1.0 for v in self._vector(prompt)]}

    def embed(self, model, input):
        if isinstance(input, str):
            self.single_calls += 1
            texts = [input]
        else:
            self.batch_calls += 1
            texts = list(input)
            if self.fail_batch:
                raise ConnectionError("batch request rejected")
        if self.fail:
            raise ConnectionError("ollama is down")
        return {"embeddings": [self._vector(t) for t in texts]}


class FakeChatClient:
    """Stands in for ollama.Client.chat"""

    def __init__(self, reply="The sky is blue.", fail=False):
        self.reply = reply
        self.fail = fail
        self.calls = []

    def chat(self, model, messages, options=None):
        self.calls.append({"model": model, "messages": messages, "options": options})
        if self.fail:
            raise TimeoutError("generation timed out")
        return {"message": {"role": "assistant", "content": self.reply}}


@pytest.fixture
def embed_client():
    return FakeEmbeddingClient()


@pytest.fixture
def embedder(embed_client):
    return Embedder(model="fake-embed", dimensions=DIMENSIONS, client=embed_client)


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def chunker():
    return WordChunker(max_size=50, overlap=10)


@pytest.fixture
def vector_store(tmp_path):
    store = LanceDBVectorStore(str(tmp_path / "lance"), dimensions=DIMENSIONS, persist_index=False)
    yield store
    if store.table is not None:
        store.close()


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'greyseal.db'}")
    yield engine
    engine.dispose()
