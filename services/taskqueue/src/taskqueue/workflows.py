"""
Canvas helpers: the chain, group and chord examples of the task chapter.

Each helper returns an unsent signature; call ``.apply_async()`` (or
``.delay()``) on the result to run it.
"""

from __future__ import annotations

from typing import Sequence

from celery import chain, chord, group
from celery.canvas import Signature

from taskqueue.tasks import (
    charge_payment,
    compute_partial_total,
    fetch_order,
    resize_image,
    send_receipt,
    sum_totals,
)


class WorkflowError(ValueError):
    """Raised when a workflow is built from empty input."""


def checkout_chain(order_id: str) -> Signature:
    """fetch -> charge -> receipt; each step receives the previous result."""
    if not order_id:
        raise WorkflowError("order_id is required")
    return chain(fetch_order.s(order_id), charge_payment.s(), send_receipt.s())


def thumbnail_group(image_id: str, widths: Sequence[int]) -> Signature:
    """One ``resize_image`` per width, run in parallel."""
    if not widths:
        raise WorkflowError("at least one width is required")
    return group(resize_image.s(image_id, width) for width in widths)


def order_totals_chord(batches: Sequence[Sequence[float]]) -> Signature:
    """Sum each batch in parallel, then add the partial totals.

    Chords need a result backend: the callback only fires once every
    header task has stored its result.
    """
    if not batches or any(len(batch) == 0 for batch in batches):
        raise WorkflowError("batches must be non-empty")
    header = [compute_partial_total.s(list(batch)) for batch in batches]
    return chord(header, sum_totals.s())
