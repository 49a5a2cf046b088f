"""
Queue consumer for the stack guide.

A kombu ``ConsumerMixin`` worker with manual acknowledgements:

* handler returns            -> ``ack``
* ``PermanentMessageError``  -> ``reject(requeue=False)`` (dead-lettered when
  the queue has ``x-dead-letter-exchange``)
* any other exception        -> ``requeue`` once; a message that fails again
  after redelivery is rejected so a poison message cannot loop forever
* undecodable body           -> ``reject(requeue=False)``

``prefetch_count`` bounds how many unacknowledged messages the broker
hands this worker at once (``1`` gives fair dispatch across workers).
"""

from __future__ import annotations

import socket
from typing import Any, Callable

import structlog
from kombu import Connection, Consumer, Queue
from kombu.message import Message
from kombu.mixins import ConsumerMixin

logger = structlog.get_logger()

MessageHandler = Callable[[Any, Message], None]


class PermanentMessageError(Exception):
    """Raised by a handler for messages that can never succeed."""


class QueueWorker(ConsumerMixin):
    """Consume *queues* and pass each decoded body to *handler*.

    Args:
        connection: kombu connection.
        queues: kombu queues to consume (typically from ``Topology.build_queues``).
        handler: ``handler(body, message)``; raising signals failure.
        prefetch_count: Maximum unacknowledged messages in flight.
        requeue_on_error: Requeue on the first transient failure.
    """

    def __init__(
        self,
        connection: Connection,
        queues: list[Queue],
        handler: MessageHandler,
        *,
        prefetch_count: int = 1,
        requeue_on_error: bool = True,
    ) -> None:
        if prefetch_count < 1:
            raise ValueError("prefetch_count must be >= 1")
        self.connection = connection
        self.queues = queues
        self.handler = handler
        self.prefetch_count = prefetch_count
        self.requeue_on_error = requeue_on_error
        self.acked = 0
        self.requeued = 0
        self.rejected = 0
        # Ids requeued by this worker; not every transport sets ``redelivered``.
        self._requeued_ids: set[str] = set()

    @property
    def handled(self) -> int:
        """Messages settled so far, whatever the outcome."""
        return self.acked + self.requeued + self.rejected

    # ── ConsumerMixin ──

    def get_consumers(self, consumer_cls: Any, channel: Any) -> list[Consumer]:
        return [self._build_consumer(consumer_cls)]

    def _build_consumer(self, consumer_cls: Any) -> Consumer:
        return consumer_cls(
            queues=self.queues,
            callbacks=[self.on_message],
            on_decode_error=self.on_decode_error,
            accept=["json"],
            prefetch_count=self.prefetch_count,
        )

    # ── callbacks ──

    def on_message(self, body: Any, message: Message) -> None:
        delivery_info = message.delivery_info or {}
        message_id = (message.properties or {}).get("message_id")
        redelivered = bool(delivery_info.get("redelivered")) or (
            message_id is not None and message_id in self._requeued_ids
        )
        log = logger.bind(routing_key=delivery_info.get("routing_key"), message_id=message_id)
        try:
            self.handler(body, message)
        except PermanentMessageError as exc:
            log.warning("message_rejected", error=str(exc))
            message.reject(requeue=False)
            self.rejected += 1
            self._requeued_ids.discard(message_id)
        except Exception as exc:  # noqa: BLE001
            if self.requeue_on_error and not redelivered:
                log.warning("message_requeued", error=str(exc))
                if message_id is not None:
                    self._requeued_ids.add(message_id)
                message.requeue()
                self.requeued += 1
            else:
                log.error("message_dead_lettered", error=str(exc))
                message.reject(requeue=False)
                self.rejected += 1
                self._requeued_ids.discard(message_id)
        else:
            message.ack()
            self.acked += 1
            self._requeued_ids.discard(message_id)

    def on_decode_error(self, message: Message, exc: Exception) -> None:
        logger.error(
            "message_decode_failed",
            content_type=message.content_type,
            error=str(exc),
        )
        message.reject(requeue=False)
        self.rejected += 1

    # ── bounded consumption ──

    def drain(self, max_messages: int | None = None, timeout: float = 1.0) -> int:
        """Process pending messages until the queues are idle for *timeout* seconds.

        Unlike :meth:`run`, this returns. Scripts use it to consume a batch
        and exit.

        Returns:
            Number of messages settled during this call.
        """
        start = self.handled
        consumer = self._build_consumer(lambda **kw: Consumer(self.connection, **kw))
        with consumer:
            while max_messages is None or self.handled - start < max_messages:
                try:
                    self.connection.drain_events(timeout=timeout)
                except socket.timeout:
                    break
        drained = self.handled - start
        logger.info("queue_drained", messages=drained)
        return drained
