"""Celery walkthrough: a single task, a chain, a group and a chord.

Needs a running worker::

    celery -A guide_common.messaging.celery_app worker --loglevel=info -Q default,maintenance

Usage:
    python examples/celery_workflows.py
"""

from taskqueue.status import get_task_status
from taskqueue.tasks import fetch_exchange_rates
from taskqueue.workflows import order_totals_chord, thumbnail_group


def main() -> None:
    rates = fetch_exchange_rates.delay("EUR")
    print("queued exchange-rate report:", rates.id)

    thumbs = thumbnail_group("img-42", [128, 256, 512]).apply_async()
    print("thumbnails:", thumbs.get(timeout=30))

    total = order_totals_chord([[9.99, 5.01], [20.00], [1.50, 2.50]]).apply_async()
    print("order total:", total.get(timeout=30))

    print(get_task_status(rates.id).model_dump())


if __name__ == "__main__":
    main()
