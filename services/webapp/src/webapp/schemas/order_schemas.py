"""Order and background-task API schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OrderCreateRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    amount: float = Field(..., gt=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)


class OrderAcceptedResponse(BaseModel):
    order_id: str
    message_id: str
    task_id: str


class ExchangeRatesRequest(BaseModel):
    base: str = Field(default="EUR", min_length=3, max_length=3)


class TaskAcceptedResponse(BaseModel):
    task_id: str
