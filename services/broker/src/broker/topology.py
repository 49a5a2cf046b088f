"""
Declarative RabbitMQ topology for the stack guide.

Exchanges, queues and bindings are described as Pydantic models,
validated up front, then turned into kombu ``Exchange``/``Queue``
objects and declared on a connection. Validation catches the mistakes
the guide warns about: binding to an exchange that was never declared,
wildcards on a direct exchange, and malformed topic patterns.
"""

from __future__ import annotations

import enum
from typing import Any

import structlog
from kombu import Connection, Exchange, Queue, binding
from pydantic import BaseModel, Field, model_validator

logger = structlog.get_logger()


class TopologyError(Exception):
    """Raised when a topology description is inconsistent.

    Subclasses ``Exception`` so it propagates out of Pydantic validators
    unchanged.
    """


class ExchangeKind(str, enum.Enum):
    """The four AMQP 0-9-1 exchange types."""

    DIRECT = "direct"    # exact routing-key match
    FANOUT = "fanout"    # broadcast, routing key ignored
    TOPIC = "topic"      # dotted-word patterns with * and #
    HEADERS = "headers"  # match on message header attributes


class ExchangeSpec(BaseModel):
    name: str = Field(min_length=1)
    kind: ExchangeKind = ExchangeKind.DIRECT
    durable: bool = True
    auto_delete: bool = False


class QueueSpec(BaseModel):
    """A queue and its RabbitMQ ``x-*`` arguments.

    Attributes:
        name: Queue name.
        durable: Survive broker restarts (messages must also be persistent).
        exclusive: Only the declaring connection may use the queue.
        auto_delete: Delete when the last consumer unsubscribes.
        dead_letter_exchange: Exchange receiving rejected/expired messages.
        message_ttl_ms: Per-queue message lifetime.
        max_length: Maximum ready messages; oldest are dropped/dead-lettered.
    """

    name: str = Field(min_length=1)
    durable: bool = True
    exclusive: bool = False
    auto_delete: bool = False
    dead_letter_exchange: str | None = None
    message_ttl_ms: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=1)

    def arguments(self) -> dict[str, Any]:
        args: dict[str, Any] = {}
        if self.dead_letter_exchange:
            args["x-dead-letter-exchange"] = self.dead_letter_exchange
        if self.message_ttl_ms is not None:
            args["x-message-ttl"] = self.message_ttl_ms
        if self.max_length is not None:
            args["x-max-length"] = self.max_length
        return args


class BindingSpec(BaseModel):
    """Route messages from *exchange* to *queue*.

    ``routing_key`` is the binding key (a pattern for topic exchanges);
    ``arguments`` carries header matches for headers exchanges, including
    ``x-match`` (``all`` or ``any``).
    """

    queue: str
    exchange: str
    routing_key: str = ""
    arguments: dict[str, Any] = Field(default_factory=dict)


def validate_topic_pattern(pattern: str) -> None:
    """Check a topic binding key: dot-separated words, ``*``/``#`` only as whole words.

    Raises:
        TopologyError: If the pattern is malformed.
    """
    if pattern == "":
        raise TopologyError("topic binding key must not be empty")
    for word in pattern.split("."):
        if word == "":
            raise TopologyError(f"empty word in topic pattern {pattern!r}")
        if word not in ("*", "#") and ("*" in word or "#" in word):
            raise TopologyError(f"wildcard must be a whole word in {pattern!r}")


def topic_matches(pattern: str, routing_key: str) -> bool:
    """Return whether *routing_key* would match topic binding *pattern*.

    ``*`` matches exactly one word, ``#`` matches zero or more words. This
    mirrors the rule the broker applies and is used by the guide to explain
    bindings; routing itself always happens in RabbitMQ.
    """
    return _match_words(pattern.split("."), routing_key.split(".") if routing_key else [])


def _match_words(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match_words(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match_words(rest, words[1:])
    return False


class Topology(BaseModel):
    """A complete set of exchanges, queues and bindings."""

    exchanges: list[ExchangeSpec] = Field(default_factory=list)
    queues: list[QueueSpec] = Field(default_factory=list)
    bindings: list[BindingSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check(self) -> "Topology":
        exchange_names = [e.name for e in self.exchanges]
        queue_names = [q.name for q in self.queues]
        for label, names in (("exchange", exchange_names), ("queue", queue_names)):
            dupes = {n for n in names if names.count(n) > 1}
            if dupes:
                raise TopologyError(f"duplicate {label} names: {sorted(dupes)}")

        kinds = {e.name: e.kind for e in self.exchanges}
        for q in self.queues:
            if q.dead_letter_exchange and q.dead_letter_exchange not in kinds:
                raise TopologyError(
                    f"queue {q.name!r} dead-letters to undeclared exchange {q.dead_letter_exchange!r}",
                )
        for b in self.bindings:
            if b.exchange not in kinds:
                raise TopologyError(f"binding references unknown exchange {b.exchange!r}")
            if b.queue not in queue_names:
                raise TopologyError(f"binding references unknown queue {b.queue!r}")
            kind = kinds[b.exchange]
            if kind is ExchangeKind.TOPIC:
                validate_topic_pattern(b.routing_key)
            elif kind is ExchangeKind.DIRECT and ("*" in b.routing_key or "#" in b.routing_key):
                raise TopologyError(
                    f"direct exchange {b.exchange!r} does not support wildcards ({b.routing_key!r})",
                )
            elif kind is ExchangeKind.HEADERS:
                match_args = {k: v for k, v in b.arguments.items() if k != "x-match"}
                if not match_args:
                    raise TopologyError(f"headers binding on {b.exchange!r} needs header arguments")
                if b.arguments.get("x-match", "all") not in ("all", "any"):
                    raise TopologyError("x-match must be 'all' or 'any'")
        return self

    def exchange(self, name: str) -> ExchangeSpec:
        for item in self.exchanges:
            if item.name == name:
                return item
        raise KeyError(name)

    def routes(
        self,
        exchange: str,
        routing_key: str = "",
        headers: dict[str, Any] | None = None,
    ) -> list[str]:
        """Queues RabbitMQ would deliver a message to, in binding order.

        Applies the broker's rules per exchange kind: exact key for direct,
        every binding for fanout, :func:`topic_matches` for topic and
        ``x-match`` all / any over the header arguments for headers.
        """
        kind = self.exchange(exchange).kind
        headers = headers or {}
        matched: list[str] = []
        for b in self.bindings:
            if b.exchange != exchange or b.queue in matched:
                continue
            if kind is ExchangeKind.FANOUT:
                hit = True
            elif kind is ExchangeKind.DIRECT:
                hit = b.routing_key == routing_key
            elif kind is ExchangeKind.TOPIC:
                hit = topic_matches(b.routing_key, routing_key)
            else:
                wanted = {k: v for k, v in b.arguments.items() if k != "x-match"}
                hits = [headers.get(k) == v for k, v in wanted.items()]
                hit = any(hits) if b.arguments.get("x-match", "all") == "any" else all(hits)
            if hit:
                matched.append(b.queue)
        return matched

    # ── kombu objects ──

    def build_exchanges(self) -> dict[str, Exchange]:
        return {
            item.name: Exchange(
                item.name,
                type=item.kind.value,
                durable=item.durable,
                auto_delete=item.auto_delete,
            )
            for item in self.exchanges
        }

    def build_queues(self) -> list[Queue]:
        """Return kombu queues carrying their bindings and ``x-*`` arguments."""
        exchanges = self.build_exchanges()
        queues: list[Queue] = []
        for item in self.queues:
            bindings = []
            for b in self.bindings:
                if b.queue != item.name:
                    continue
                arguments = dict(b.arguments)
                if exchanges[b.exchange].type == ExchangeKind.HEADERS.value:
                    arguments.setdefault("x-match", "all")
                bindings.append(
                    binding(exchanges[b.exchange], routing_key=b.routing_key, arguments=arguments or None),
                )
            queues.append(
                Queue(
                    item.name,
                    bindings=bindings or None,
                    durable=item.durable,
                    exclusive=item.exclusive,
                    auto_delete=item.auto_delete,
                    queue_arguments=item.arguments() or None,
                ),
            )
        return queues

    def queue(self, name: str) -> Queue:
        for q in self.build_queues():
            if q.name == name:
                return q
        raise KeyError(name)

    def declare(self, connection: Connection) -> None:
        """Declare every exchange, queue and binding on *connection*.

        Declarations are idempotent as long as the properties match what
        already exists on the broker; a mismatch closes the channel with
        ``PRECONDITION_FAILED``.
        """
        channel = connection.default_channel
        for exchange in self.build_exchanges().values():
            exchange(channel).declare()
        for queue in self.build_queues():
            queue(channel).declare()
        logger.info(
            "topology_declared",
            exchanges=len(self.exchanges),
            queues=len(self.queues),
            bindings=len(self.bindings),
        )
