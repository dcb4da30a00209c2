"""
Message Bus - Topic/consumer-group delivery of raw payloads

Backends:
- InMemoryMessageBus: thread-safe queues, one per (topic, group); for local
  runs and tests
- RedisStreamBus: Redis Streams (XADD / XGROUP CREATE MKSTREAM /
  XREADGROUP / XACK)

Each subscription is a generator of BusMessage(payload, ack). It polls with
a bounded timeout and returns once the given stop event is set, so workers
shut down deterministically.
"""

import logging
import queue
import socket
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterator, Optional, Protocol, Tuple, runtime_checkable

import redis

from greyseal.errors import TransientBackendError

logger = logging.getLogger(__name__)

PAYLOAD_FIELD = b"payload"
DEFAULT_REPLAY_LIMIT = 1000


@dataclass
class BusMessage:
    """A delivered payload plus the callback that acknowledges it"""
    payload: bytes
    ack: Callable[[], None]


@runtime_checkable
class MessageBus(Protocol):
    """Protocol for message bus backends."""

    def publish(self, topic: str, payload: bytes) -> None:
        ...

    def poll(self, topic: str, group_id: str, timeout: float) -> Optional[BusMessage]:
        """Return the next message for the group, or None after timeout seconds."""
        ...

    def subscribe(
        self,
        topic: str,
        group_id: str,
        stop_event: Optional[threading.Event] = None
    ) -> Iterator[BusMessage]:
        ...

    def close(self) -> None:
        ...


def _subscribe(
    bus: MessageBus,
    topic: str,
    group_id: str,
    stop_event: Optional[threading.Event],
    poll_timeout: float
) -> Iterator[BusMessage]:
    stop_event = stop_event or threading.Event()
    while not stop_event.is_set() and not getattr(bus, "closed", False):
        message = bus.poll(topic, group_id, poll_timeout)
        if message is not None:
            yield message


class InMemoryMessageBus:
    """In-process bus; every group on a topic sees every message once

    Groups that subscribe after messages were published replay at most the
    last `replay_limit` payloads of the topic.
    """

    def __init__(self, poll_timeout: float = 0.1, replay_limit: int = DEFAULT_REPLAY_LIMIT):
        self.poll_timeout = poll_timeout
        self.replay_limit = replay_limit
        self.closed = False
        self.acked = 0
        self._lock = threading.Lock()
        self._log: Dict[str, Deque[bytes]] = {}
        self._queues: Dict[Tuple[str, str], "queue.Queue[bytes]"] = {}

    def _group_queue(self, topic: str, group_id: str) -> "queue.Queue[bytes]":
        key = (topic, group_id)
        with self._lock:
            q = self._queues.get(key)
            if q is None:
                # New groups start from the oldest retained message
                q = queue.Queue()
                for payload in self._log.get(topic, ()):
                    q.put(payload)
                self._queues[key] = q
            return q

    def publish(self, topic: str, payload: bytes) -> None:
        with self._lock:
            log = self._log.get(topic)
            if log is None:
                log = self._log[topic] = deque(maxlen=self.replay_limit)
            log.append(payload)
            for (queue_topic, _), q in self._queues.items():
                if queue_topic == topic:
                    q.put(payload)
        logger.debug(f"Published {len(payload)} bytes to {topic}")

    def _ack(self) -> None:
        with self._lock:
            self.acked += 1

    def poll(self, topic: str, group_id: str, timeout: float) -> Optional[BusMessage]:
        try:
            payload = self._group_queue(topic, group_id).get(timeout=timeout)
        except queue.Empty:
            return None
        return BusMessage(payload=payload, ack=self._ack)

    def subscribe(
        self,
        topic: str,
        group_id: str,
        stop_event: Optional[threading.Event] = None
    ) -> Iterator[BusMessage]:
        self._group_queue(topic, group_id)
        return _subscribe(self, topic, group_id, stop_event, self.poll_timeout)

    def close(self) -> None:
        self.closed = True


class RedisStreamBus:
    """Redis Streams bus with consumer groups"""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        block_ms: int = 1000,
        socket_timeout: float = 5.0,
        consumer_name: Optional[str] = None,
        client: Optional[redis.Redis] = None
    ):
        """
        Args:
            url: Redis URL
            block_ms: XREADGROUP block time per poll (bounds stop latency)
            socket_timeout: Socket timeout in seconds; must exceed block_ms
            consumer_name: Consumer name within each group (default: hostname)
            client: Pre-built client (tests inject fakes here)
        """
        self.block_ms = block_ms
        self.consumer_name = consumer_name or f"greyseal-{socket.gethostname()}"
        self.client = client or redis.Redis.from_url(
            url,
            socket_timeout=max(socket_timeout, block_ms / 1000.0 + 1.0),
            socket_connect_timeout=socket_timeout,
        )
        self.closed = False
        self._groups = set()

    def _ensure_group(self, topic: str, group_id: str) -> None:
        if (topic, group_id) in self._groups:
            return
        try:
            self.client.xgroup_create(topic, group_id, id="0", mkstream=True)
            logger.info(f"Created consumer group {group_id} on {topic}")
        except redis.exceptions.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise TransientBackendError(f"Failed to create consumer group {group_id}: {e}") from e
        except redis.exceptions.RedisError as e:
            raise TransientBackendError(f"Failed to create consumer group {group_id}: {e}") from e
        self._groups.add((topic, group_id))

    def publish(self, topic: str, payload: bytes) -> None:
        try:
            self.client.xadd(topic, {PAYLOAD_FIELD: payload})
        except redis.exceptions.RedisError as e:
            raise TransientBackendError(f"Failed to publish to {topic}: {e}") from e

    def poll(self, topic: str, group_id: str, timeout: float) -> Optional[BusMessage]:
        self._ensure_group(topic, group_id)
        try:
            response = self.client.xreadgroup(
                group_id,
                self.consumer_name,
                {topic: ">"},
                count=1,
                block=int(timeout * 1000),
            )
        except redis.exceptions.RedisError as e:
            raise TransientBackendError(f"Failed to read from {topic}: {e}") from e

        if not response:
            return None
        _, entries = response[0]
        if not entries:
            return None
        message_id, fields = entries[0]

        def ack() -> None:
            self.client.xack(topic, group_id, message_id)

        payload = fields.get(PAYLOAD_FIELD)
        if payload is None:
            payload = fields.get(PAYLOAD_FIELD.decode(), b"")
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return BusMessage(payload=payload, ack=ack)

    def subscribe(
        self,
        topic: str,
        group_id: str,
        stop_event: Optional[threading.Event] = None
    ) -> Iterator[BusMessage]:
        return _subscribe(self, topic, group_id, stop_event, self.block_ms / 1000.0)

    def close(self) -> None:
        self.closed = True
        self.client.close()
