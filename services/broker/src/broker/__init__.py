"""
Message-broker examples for the stack guide (RabbitMQ section).

Uses kombu, the messaging library Celery itself is built on, to
declare exchanges, queues and bindings, publish persistent messages
and consume them with explicit acknowledgements and prefetch limits.
"""

from broker.consumer import PermanentMessageError, QueueWorker
from broker.producer import Publisher
from broker.topology import ExchangeKind, Topology, TopologyError

__all__ = [
    "ExchangeKind",
    "PermanentMessageError",
    "Publisher",
    "QueueWorker",
    "Topology",
    "TopologyError",
]
