"""Queue side of the ingester: message framing, the publish pipeline and proxy adapters."""

from .consumer import BatchedQueueConsumer, QueueConfig
from .event import PublicationEvent
from .handler import MessageHandler
from .message import RawQueueMessage, decode_message, encode_message
from .observers import LoggingObserver, MetricsObserver, PipelineObserver, PipelineOutcome, Stage
from .producer import QueueProducer

__all__ = [
    "BatchedQueueConsumer",
    "LoggingObserver",
    "MessageHandler",
    "MetricsObserver",
    "PipelineObserver",
    "PipelineOutcome",
    "PublicationEvent",
    "QueueConfig",
    "QueueProducer",
    "RawQueueMessage",
    "Stage",
    "decode_message",
    "encode_message",
]
