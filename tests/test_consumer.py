"""
Tests for the in-memory message bus and the consumer workers.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from greyseal.errors import DecodeError
from greyseal.messaging.bus import InMemoryMessageBus, MessageBus
from greyseal.messaging.codec import decode_question, encode_question, encode_resource
from greyseal.messaging.consumer import (
    QUESTION_TOPIC,
    RESOURCE_TOPIC,
    ConsumerWorker,
    QuestionConsumer,
    ResourceConsumer,
)
from greyseal.models import Question, Resource, SourceKind


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def bus():
    bus = InMemoryMessageBus(poll_timeout=0.05)
    yield bus
    bus.close()


@pytest.fixture
def handled():
    return []


@pytest.fixture
def worker(bus, handled):
    worker = ConsumerWorker(bus, QUESTION_TOPIC, "test-group", decode_question, handled.append, retry_delay=0.05)
    yield worker
    worker.stop(timeout=5)


def publish_question(bus, content, question_id="wire-id"):
    bus.publish(QUESTION_TOPIC, encode_question(Question(id=question_id, content=content)))


class TestInMemoryBus:
    """Delivery semantics of the in-process bus"""

    def test_implements_protocol(self, bus):
        assert isinstance(bus, MessageBus)

    def test_poll_times_out_with_none(self, bus):
        assert bus.poll("empty", "g", timeout=0.01) is None

    def test_each_group_sees_every_message(self, bus):
        bus.poll("t", "a", timeout=0.01)
        bus.poll("t", "b", timeout=0.01)

        bus.publish("t", b"one")

        assert bus.poll("t", "a", timeout=0.1).payload == b"one"
        assert bus.poll("t", "b", timeout=0.1).payload == b"one"
        assert bus.poll("t", "a", timeout=0.01) is None

    def test_new_group_starts_from_beginning(self, bus):
        bus.publish("t", b"one")
        bus.publish("t", b"two")

        assert bus.poll("t", "late", timeout=0.1).payload == b"one"
        assert bus.poll("t", "late", timeout=0.1).payload == b"two"

    def test_replay_log_is_bounded(self):
        bus = InMemoryMessageBus(poll_timeout=0.05, replay_limit=3)
        for i in range(5):
            bus.publish("t", f"m{i}".encode())

        replayed = []
        while True:
            message = bus.poll("t", "late", timeout=0.05)
            if message is None:
                break
            replayed.append(message.payload)

        assert replayed == [b"m2", b"m3", b"m4"]
        assert len(bus._log["t"]) == 3

    def test_replay_limit_does_not_drop_live_deliveries(self):
        bus = InMemoryMessageBus(poll_timeout=0.05, replay_limit=1)
        bus.poll("t", "early", timeout=0.01)
        for i in range(3):
            bus.publish("t", f"m{i}".encode())

        assert [bus.poll("t", "early", timeout=0.1).payload for _ in range(3)] == [b"m0", b"m1", b"m2"]

    def test_ack_is_counted(self, bus):
        bus.publish("t", b"one")

        bus.poll("t", "g", timeout=0.1).ack()

        assert bus.acked == 1

    def test_subscription_ends_when_stop_is_set(self, bus):
        stop = threading.Event()
        stop.set()

        assert list(bus.subscribe("t", "g", stop_event=stop)) == []

    def test_subscription_ends_when_bus_closes(self, bus):
        bus.close()

        assert list(bus.subscribe("t", "g")) == []


class TestConsumerWorker:
    """Decode, re-id, handle and ack"""

    def test_handles_published_message(self, bus, worker, handled):
        worker.start()
        publish_question(bus, "What color is the sky?")

        assert wait_until(lambda: worker.processed == 1)
        assert handled[0].content == "What color is the sky?"
        assert wait_until(lambda: bus.acked == 1)

    def test_mints_fresh_id(self, bus, worker, handled):
        worker.start()
        publish_question(bus, "one", question_id="same")
        publish_question(bus, "two", question_id="same")

        assert wait_until(lambda: worker.processed == 2)
        ids = {q.id for q in handled}
        assert len(ids) == 2
        assert "same" not in ids

    def test_survives_malformed_payload(self, bus, worker, handled):
        worker.start()
        bus.publish(QUESTION_TOPIC, b"{not json")
        publish_question(bus, "Still there?")

        assert wait_until(lambda: worker.processed == 1)
        assert worker.failed == 1
        assert isinstance(worker.errors.get(timeout=1), DecodeError)
        assert wait_until(lambda: bus.acked == 2)
        assert worker.is_running

    def test_handler_failure_is_recorded_and_acked(self, bus):
        def explode(question):
            raise RuntimeError("generator offline")

        worker = ConsumerWorker(bus, QUESTION_TOPIC, "g", decode_question, explode)
        worker.start()
        try:
            publish_question(bus, "Why?")

            assert wait_until(lambda: worker.failed == 1)
            assert str(worker.errors.get(timeout=1)) == "generator offline"
            assert wait_until(lambda: bus.acked == 1)
        finally:
            worker.stop(timeout=5)

    def test_stop_returns_promptly(self, worker):
        worker.start()

        started = time.monotonic()
        assert worker.stop(timeout=5) is True
        assert time.monotonic() - started < 2
        assert worker.is_running is False

    def test_double_start_rejected(self, worker):
        worker.start()

        with pytest.raises(RuntimeError):
            worker.start()

    def test_can_restart_after_stop(self, bus, worker, handled):
        worker.start()
        worker.stop(timeout=5)
        worker.start()
        publish_question(bus, "Again?")

        assert wait_until(lambda: worker.processed == 1)

    def test_process_directly(self, handled):
        message = Mock(payload=encode_question(Question(id="x", content="Direct?")))
        worker = ConsumerWorker(Mock(), QUESTION_TOPIC, "g", decode_question, handled.append)

        worker.process(message)

        message.ack.assert_called_once()
        assert handled[0].content == "Direct?"

    def test_errors_queue_keeps_most_recent(self):
        def reject(question):
            raise ValueError(question.content)

        worker = ConsumerWorker(Mock(), QUESTION_TOPIC, "g", decode_question, reject, max_errors=3)

        for i in range(5):
            worker.process(Mock(payload=encode_question(Question(id="x", content=f"q{i}"))))

        assert worker.failed == 5
        assert worker.dropped_errors == 2
        assert [str(worker.errors.get_nowait()) for _ in range(3)] == ["q2", "q3", "q4"]
        assert worker.errors.empty()


class TestDomainConsumers:
    """Resource and question consumers bound to services"""

    def test_resource_consumer_calls_create(self, bus):
        service = Mock()
        consumer = ResourceConsumer(bus, service)
        consumer.start()
        try:
            resource = Resource(id="wire", source_kind=SourceKind.WEBSITE, locator="example.com")
            bus.publish(RESOURCE_TOPIC, encode_resource(resource))

            assert wait_until(lambda: service.create.called)
            created = service.create.call_args.args[0]
            assert created.locator == "example.com"
            assert created.id != "wire"
        finally:
            consumer.stop(timeout=5)

    def test_question_consumer_calls_ask(self, bus):
        service = Mock()
        consumer = QuestionConsumer(bus, service)
        consumer.start()
        try:
            publish_question(bus, "What color is the sky?")

            assert wait_until(lambda: service.ask.called)
            assert service.ask.call_args.args[0].content == "What color is the sky?"
        finally:
            consumer.stop(timeout=5)
