"""
Order API router.

An order is stored in Redis, the checkout chain is queued in Celery, and
the order is announced on the ``orders`` topic exchange as
``order.created`` (billing and audit consumers pick it up). The response
is ``202 Accepted``: everything after this point happens asynchronously.

If the broker refuses either message the order hash is deleted and the
client gets ``503``. A chain that was already queued then stops at
``fetch_order`` without charging anything.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from kombu.exceptions import OperationalError
from starlette.concurrency import run_in_threadpool

from broker.producer import Publisher
from caching.keys import CacheKeyBuilder
from guide_common.utils import new_id, utc_now
from monitoring.context import tag_request
from taskqueue.workflows import checkout_chain
from webapp.dependencies import get_keys, get_publisher, get_redis
from webapp.schemas.order_schemas import OrderAcceptedResponse, OrderCreateRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/orders", tags=["orders"])


def _queue_checkout(order_id: str) -> str:
    return checkout_chain(order_id).apply_async().id


@router.post("", status_code=202, response_model=OrderAcceptedResponse)
async def create_order(
    body: OrderCreateRequest,
    redis: Any = Depends(get_redis),
    keys: CacheKeyBuilder = Depends(get_keys),
    publisher: Publisher = Depends(get_publisher),
) -> OrderAcceptedResponse:
    order_id = new_id()
    tag_request(order_id=order_id)
    order = {
        "order_id": order_id,
        "email": body.email,
        "amount": body.amount,
        "currency": body.currency.upper(),
        "created_at": utc_now().isoformat(),
    }
    key = keys.build("order", order_id)
    await redis.hset(key, mapping={k: str(v) for k, v in order.items()})

    # Both calls block on broker I/O (and its reconnect retries).
    try:
        task_id = await run_in_threadpool(_queue_checkout, order_id)
        message_id = await run_in_threadpool(
            publisher.publish, order, "order.created", message_id=order_id,
        )
    except OperationalError as exc:
        await redis.delete(key)
        logger.error("order_enqueue_failed", order_id=order_id, error=str(exc))
        raise HTTPException(status_code=503, detail="message broker unavailable") from exc

    logger.info("order_accepted", order_id=order_id, task_id=task_id)
    return OrderAcceptedResponse(order_id=order_id, message_id=message_id, task_id=task_id)
