"""Background task API router: queue a report, poll any task by id."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from kombu.exceptions import OperationalError
from starlette.concurrency import run_in_threadpool

from guide_common.models.task import TaskStatus
from taskqueue.status import get_task_status
from taskqueue.tasks import fetch_exchange_rates
from webapp.schemas.order_schemas import ExchangeRatesRequest, TaskAcceptedResponse

router = APIRouter(tags=["tasks"])


@router.post("/reports/exchange-rates", status_code=202, response_model=TaskAcceptedResponse)
async def queue_exchange_rates(body: ExchangeRatesRequest) -> TaskAcceptedResponse:
    try:
        result = await run_in_threadpool(fetch_exchange_rates.delay, body.base.upper())
    except OperationalError as exc:
        raise HTTPException(status_code=503, detail="message broker unavailable") from exc
    return TaskAcceptedResponse(task_id=result.id)


@router.get("/tasks/{task_id}", response_model=TaskStatus)
async def task_status(task_id: str) -> TaskStatus:
    # Reading the result backend is a blocking call.
    return await run_in_threadpool(get_task_status, task_id)
