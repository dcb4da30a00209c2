"""
Consumer Workers - Drive the domain services from message bus topics

Each worker owns one thread and processes its topic sequentially:
1. Decode the payload (malformed payloads are logged, recorded and dropped)
2. Replace the wire id with a freshly minted uuid4
3. Call the handler synchronously (failures are logged and recorded)
4. Acknowledge the message

There are no retries and no dead-letter queue; failures land on the
worker's `errors` queue for supervisors and tests to drain.
"""

import dataclasses
import logging
import queue
import threading
import uuid
from typing import Any, Callable, Optional

from greyseal.errors import DecodeError
from greyseal.messaging.bus import BusMessage, MessageBus
from greyseal.messaging.codec import decode_question, decode_resource

logger = logging.getLogger(__name__)

RESOURCE_TOPIC = "greyseal.resources"
QUESTION_TOPIC = "greyseal.questions"
RESOURCE_GROUP = "greyseal-resource-ingestion"
QUESTION_GROUP = "greyseal-question-answering"
DEFAULT_MAX_ERRORS = 100


class ConsumerWorker:
    """Sequential topic consumer running on its own thread"""

    def __init__(
        self,
        bus: MessageBus,
        topic: str,
        group_id: str,
        decode: Callable[[bytes], Any],
        handle: Callable[[Any], Any],
        name: Optional[str] = None,
        retry_delay: float = 1.0,
        max_errors: int = DEFAULT_MAX_ERRORS
    ):
        """
        Args:
            bus: Message bus to subscribe to
            topic: Topic name
            group_id: Consumer group
            decode: Payload -> entity (raises DecodeError)
            handle: Called once per decoded entity
            name: Thread name
            retry_delay: Wait before resubscribing after a bus failure
            max_errors: Capacity of the errors queue; the oldest error is
                dropped when an undrained queue is full
        """
        self.bus = bus
        self.topic = topic
        self.group_id = group_id
        self.decode = decode
        self.handle = handle
        self.name = name or f"consumer-{topic}"
        self.retry_delay = retry_delay
        self.errors: "queue.Queue[Exception]" = queue.Queue(maxsize=max_errors)
        self.dropped_errors = 0
        self.processed = 0
        self.failed = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError(f"{self.name} is already running")
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"Started {self.name} (group={self.group_id})")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the worker to stop and wait for it

        Returns:
            True if the thread has exited
        """
        self._stop.set()
        self.join(timeout)
        stopped = not self.is_running
        if stopped:
            logger.info(f"Stopped {self.name}")
        else:
            logger.warning(f"{self.name} did not stop within {timeout}s")
        return stopped

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _record_error(self, error: Exception) -> None:
        while True:
            try:
                self.errors.put_nowait(error)
                return
            except queue.Full:
                try:
                    self.errors.get_nowait()
                    self.dropped_errors += 1
                except queue.Empty:
                    pass

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                for message in self.bus.subscribe(self.topic, self.group_id, stop_event=self._stop):
                    self.process(message)
                    if self._stop.is_set():
                        break
            except Exception as e:
                logger.error(f"{self.name} lost its subscription: {e}")
                self._record_error(e)
                self._stop.wait(self.retry_delay)
            else:
                if getattr(self.bus, "closed", False):
                    break

    def process(self, message: BusMessage) -> None:
        """Decode, re-id, handle and acknowledge one message"""
        try:
            try:
                entity = self.decode(message.payload)
            except DecodeError as e:
                logger.error(f"unable to process message on {self.topic}: {e}")
                self._record_error(e)
                self.failed += 1
                return

            entity = dataclasses.replace(entity, id=str(uuid.uuid4()))
            try:
                self.handle(entity)
            except Exception as e:
                logger.error(f"{self.name} failed to handle {entity.id}: {e}")
                self._record_error(e)
                self.failed += 1
                return

            self.processed += 1
            logger.info(f"{self.topic} message handled as {entity.id}")
        finally:
            message.ack()


class ResourceConsumer(ConsumerWorker):
    """Ingest resources published on the resource topic"""

    def __init__(self, bus: MessageBus, service, topic: str = RESOURCE_TOPIC, group_id: str = RESOURCE_GROUP):
        super().__init__(
            bus=bus,
            topic=topic,
            group_id=group_id,
            decode=decode_resource,
            handle=service.create,
            name="resource-consumer",
        )


class QuestionConsumer(ConsumerWorker):
    """Answer questions published on the question topic"""

    def __init__(self, bus: MessageBus, service, topic: str = QUESTION_TOPIC, group_id: str = QUESTION_GROUP):
        super().__init__(
            bus=bus,
            topic=topic,
            group_id=group_id,
            decode=decode_question,
            handle=service.ask,
            name="question-consumer",
        )
