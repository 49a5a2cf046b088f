"""RabbitMQ walkthrough: declare the topic-routing topology, publish, consume.

``order.*`` reaches billing, ``#`` reaches audit; a handler that raises
``PermanentMessageError`` sends the message to the dead-letter queue.

Usage:
    python examples/rabbitmq_routing.py
"""

from broker.connection import connect
from broker.consumer import PermanentMessageError, QueueWorker
from broker.patterns import ORDERS_EXCHANGE, orders_topology
from broker.producer import Publisher
from guide_common.logging import configure_logging


def bill(body: dict, message) -> None:
    if body.get("amount", 0) <= 0:
        raise PermanentMessageError("nothing to bill")
    print(f"billing {body['order_id']}: {body['amount']}")


def main() -> None:
    configure_logging("INFO", "console")
    topology = orders_topology()
    with connect() as connection:
        publisher = Publisher(connection, ORDERS_EXCHANGE, topology=topology)
        publisher.publish({"order_id": "A-1", "amount": 20}, "order.created")
        publisher.publish({"order_id": "A-2", "amount": 0}, "order.created")
        publisher.publish({"order_id": "A-1"}, "shipment.sent")

        billing = QueueWorker(connection, [topology.queue("orders.billing")], bill)
        billing.drain(timeout=1)
        print(f"billing: acked={billing.acked} rejected={billing.rejected}")

        audit = QueueWorker(
            connection,
            [topology.queue("orders.audit")],
            lambda body, message: print("audit:", body),
        )
        audit.drain(timeout=1)


if __name__ == "__main__":
    main()
