"""
Tests for the resource and question services over SQLite, LanceDB and fake Ollama clients.
"""

import pytest

from greyseal.errors import NotFoundError, StorageError, TransientBackendError
from greyseal.generation import OllamaGenerator
from greyseal.indexing.ingestion import IngestionPipeline
from greyseal.models import Question, Resource, SourceKind
from greyseal.repository import QuestionRepository, ResourceRepository
from greyseal.retrieval.answer import AnswerPipeline
from greyseal.services import QuestionService, ResourceService

from conftest import FakeChatClient, keyword_vector

PAGES = {
    "https://sky.example": "The sky is blue on a clear day.",
    "https://grass.example": "Grass is green in spring.",
}


class PageLoader:
    def load(self, locator, ctx=None):
        return PAGES.get(locator, "")


@pytest.fixture
def resources(engine, embedder, vector_store, chunker):
    pipeline = IngestionPipeline(embedder, vector_store, chunker, {SourceKind.WEBSITE: PageLoader()})
    return ResourceService(ResourceRepository(engine), pipeline, vector_store)


def make_questions(engine, embedder, vector_store, chat_client, top_k=1):
    generator = OllamaGenerator(model="fake-chat", client=chat_client)
    pipeline = AnswerPipeline(embedder, vector_store, generator, top_k=top_k)
    return QuestionService(QuestionRepository(engine), pipeline)


@pytest.fixture
def questions(engine, embedder, vector_store, chat_client):
    return make_questions(engine, embedder, vector_store, chat_client)


def website(resource_id, url):
    return Resource(id=resource_id, service="wiki", entity="page", source_kind=SourceKind.WEBSITE, locator=url)


class TestResourceService:
    """Create, read, list, delete"""

    def test_create_records_and_ingests(self, resources, vector_store):
        resource, report = resources.create(website("sky", "https://sky.example"))

        assert report.chunks_stored == 1
        stored = resources.get("sky")
        assert stored.locator == "https://sky.example"
        assert stored.source_kind == SourceKind.WEBSITE
        assert stored.service == "wiki"
        assert len(vector_store.get_chunks("sky")) == 1

    def test_duplicate_id_rejected(self, resources):
        resources.create(website("sky", "https://sky.example"))

        with pytest.raises(StorageError):
            resources.create(website("sky", "https://sky.example"))

    def test_get_missing(self, resources):
        with pytest.raises(NotFoundError):
            resources.get("nope")

    def test_list_is_paginated_by_id(self, resources):
        for i in range(5):
            resources.create(Resource(id=f"r{i}"))

        first = resources.list(limit=2)
        second = resources.list(cursor=first[-1].id, limit=2)
        last = resources.list(cursor=second[-1].id, limit=2)

        assert [r.id for r in first] == ["r0", "r1"]
        assert [r.id for r in second] == ["r2", "r3"]
        assert [r.id for r in last] == ["r4"]

    def test_delete_cascades_to_chunks(self, resources, vector_store):
        resources.create(website("sky", "https://sky.example"))
        resources.create(website("grass", "https://grass.example"))

        assert resources.delete("sky") == 1
        assert vector_store.get_chunks("sky") == []
        assert len(vector_store.get_chunks("grass")) == 1
        results = vector_store.search_similar(keyword_vector("sky"), k=5)
        assert [r.chunk.source_id for r in results] == ["grass"]
        with pytest.raises(NotFoundError):
            resources.get("sky")


class TestQuestionService:
    """Ask end-to-end and read back the saved answer"""

    def test_sky_question(self, resources, questions):
        resources.create(website("sky", "https://sky.example"))
        resources.create(website("grass", "https://grass.example"))

        answer = questions.ask(Question(id="q1", content="What color is the sky?", role_description="a pilot"))

        assert answer.references == ("sky",)
        assert questions.get_answer("q1") == ("The sky is blue.\n", ("sky",))
        assert questions.get("q1").role_description == "a pilot"

    def test_references_sorted_and_unique(self, engine, embedder, vector_store, chat_client, resources):
        resources.create(website("sky", "https://sky.example"))
        resources.create(website("grass", "https://grass.example"))
        service = make_questions(engine, embedder, vector_store, chat_client, top_k=5)

        answer = service.ask(Question(id="q1", content="sky or grass?"))

        assert answer.references == ("grass", "sky")
        assert service.get_answer("q1")[1] == ("grass", "sky")

    def test_deleted_resource_drops_out_of_references(self, resources, questions):
        resources.create(website("sky", "https://sky.example"))
        questions.ask(Question(id="q1", content="What color is the sky?"))

        resources.delete("sky")

        assert questions.get_answer("q1") == ("The sky is blue.\n", ())

    def test_failed_generation_keeps_question_without_answer(self, engine, embedder, vector_store, resources):
        resources.create(website("sky", "https://sky.example"))
        service = make_questions(engine, embedder, vector_store, FakeChatClient(fail=True))

        with pytest.raises(TransientBackendError):
            service.ask(Question(id="q1", content="What color is the sky?"))

        assert service.get("q1").content == "What color is the sky?"
        with pytest.raises(NotFoundError):
            service.get_answer("q1")

    def test_list_questions(self, resources, questions):
        resources.create(website("sky", "https://sky.example"))
        for qid in ("qb", "qa"):
            questions.ask(Question(id=qid, content="sky?"))

        assert [q.id for q in questions.list()] == ["qa", "qb"]

    def test_get_missing(self, questions):
        with pytest.raises(NotFoundError):
            questions.get("nope")


class TestQuestionRepository:
    """Answer persistence details"""

    def test_latest_answer_wins(self, engine):
        repo = QuestionRepository(engine)
        repo.create(Question(id="q1", content="Why?"))

        repo.save_answer("q1", "first\n", ["b"])
        repo.save_answer("q1", "second\n", ["a"])

        message, references = repo.get_answer("q1")
        assert message == "second\n"
        assert references == ("a", "b")

    def test_delete_question(self, engine):
        repo = QuestionRepository(engine)
        repo.create(Question(id="q1", content="Why?"))
        repo.save_answer("q1", "because\n", ["r1"])

        assert repo.delete("q1") is True
        assert repo.delete("q1") is False
        with pytest.raises(NotFoundError):
            repo.get_answer("q1")
