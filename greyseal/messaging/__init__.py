"""
Grey Seal Messaging Module

Asynchronous entry points: resources and questions published on a message
bus are consumed by one worker thread per domain.
"""

from greyseal.messaging.bus import BusMessage, InMemoryMessageBus, MessageBus, RedisStreamBus
from greyseal.messaging.codec import decode_question, decode_resource, encode_question, encode_resource
from greyseal.messaging.consumer import ConsumerWorker, QuestionConsumer, ResourceConsumer

__all__ = [
    "BusMessage",
    "MessageBus",
    "InMemoryMessageBus",
    "RedisStreamBus",
    "encode_resource",
    "decode_resource",
    "encode_question",
    "decode_question",
    "ConsumerWorker",
    "ResourceConsumer",
    "QuestionConsumer",
]
