"""
The guide's canonical RabbitMQ topologies.

One builder per routing behaviour covered in the broker chapter:

* :func:`work_queue`      direct exchange, competing consumers
* :func:`log_broadcast`   fanout exchange, every queue gets a copy
* :func:`topic_logs`      topic exchange with ``*`` and ``#`` bindings
* :func:`header_reports`  headers exchange with ``x-match`` all / any
* :func:`orders_topology` what the web app actually uses, with a dead-letter queue
"""

from __future__ import annotations

from broker.topology import (
    BindingSpec,
    ExchangeKind,
    ExchangeSpec,
    QueueSpec,
    Topology,
)

ORDERS_EXCHANGE = "orders"
ORDERS_DLX = "orders.dlx"


def work_queue(name: str = "tasks") -> Topology:
    """A single durable queue fed by a direct exchange of the same name.

    Several workers consuming the queue share the load; with
    ``prefetch_count=1`` a busy worker is not handed a second message.
    """
    return Topology(
        exchanges=[ExchangeSpec(name=name, kind=ExchangeKind.DIRECT)],
        queues=[QueueSpec(name=name)],
        bindings=[BindingSpec(queue=name, exchange=name, routing_key=name)],
    )


def log_broadcast(consumers: list[str]) -> Topology:
    """Fanout ``logs`` exchange with one queue per consumer."""
    if not consumers:
        raise ValueError("at least one consumer is required")
    queues = [QueueSpec(name=f"logs.{c}") for c in consumers]
    return Topology(
        exchanges=[ExchangeSpec(name="logs", kind=ExchangeKind.FANOUT)],
        queues=queues,
        bindings=[BindingSpec(queue=q.name, exchange="logs") for q in queues],
    )


def topic_logs() -> Topology:
    """``<facility>.<severity>`` routing keys on a topic exchange.

    ``logs.critical`` receives ``*.critical`` (any facility, one word),
    ``logs.kernel`` receives ``kern.#`` (everything from the kernel).
    """
    return Topology(
        exchanges=[ExchangeSpec(name="topic_logs", kind=ExchangeKind.TOPIC)],
        queues=[QueueSpec(name="logs.critical"), QueueSpec(name="logs.kernel")],
        bindings=[
            BindingSpec(queue="logs.critical", exchange="topic_logs", routing_key="*.critical"),
            BindingSpec(queue="logs.kernel", exchange="topic_logs", routing_key="kern.#"),
        ],
    )


def header_reports() -> Topology:
    """Route on message headers instead of the routing key.

    ``reports.pdf_monthly`` needs both headers (``x-match: all``);
    ``reports.any_pdf`` takes anything that is a PDF *or* monthly.
    """
    return Topology(
        exchanges=[ExchangeSpec(name="reports", kind=ExchangeKind.HEADERS)],
        queues=[QueueSpec(name="reports.pdf_monthly"), QueueSpec(name="reports.any_pdf")],
        bindings=[
            BindingSpec(
                queue="reports.pdf_monthly",
                exchange="reports",
                arguments={"x-match": "all", "format": "pdf", "period": "monthly"},
            ),
            BindingSpec(
                queue="reports.any_pdf",
                exchange="reports",
                arguments={"x-match": "any", "format": "pdf", "period": "monthly"},
            ),
        ],
    )


def orders_topology(*, message_ttl_ms: int | None = None) -> Topology:
    """Order events for the web app.

    ``order.*`` events reach billing, every event reaches the audit queue,
    and messages billing rejects end up in ``orders.dead``.
    """
    return Topology(
        exchanges=[
            ExchangeSpec(name=ORDERS_EXCHANGE, kind=ExchangeKind.TOPIC),
            ExchangeSpec(name=ORDERS_DLX, kind=ExchangeKind.FANOUT),
        ],
        queues=[
            QueueSpec(
                name="orders.billing",
                dead_letter_exchange=ORDERS_DLX,
                message_ttl_ms=message_ttl_ms,
            ),
            QueueSpec(name="orders.audit"),
            QueueSpec(name="orders.dead"),
        ],
        bindings=[
            BindingSpec(queue="orders.billing", exchange=ORDERS_EXCHANGE, routing_key="order.*"),
            BindingSpec(queue="orders.audit", exchange=ORDERS_EXCHANGE, routing_key="#"),
            BindingSpec(queue="orders.dead", exchange=ORDERS_DLX),
        ],
    )
