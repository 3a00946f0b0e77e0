from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import aiosqlite

from db import crud, models
from shop.errors import NotFoundError, PersistenceError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

TERMINAL_ORDER_STATUSES = ("completed", "cancelled")


def allowed_order_transitions(current: str) -> List[str]:
    """Admins may move an order to any other status; nothing is enforced."""
    return [s for s in models.ORDER_STATUSES if s != current]


async def change_order_status(
    order_id: int, new_status: str, when: Optional[datetime] = None
) -> models.Order:
    if new_status not in models.ORDER_STATUSES:
        raise ValidationError("status", f"unknown order status {new_status!r}")
    order = await crud.get_order(order_id)
    if order is None:
        raise NotFoundError("order", order_id)

    if order.status in TERMINAL_ORDER_STATUSES and new_status != order.status:
        _logger.warning(
            f"Order #{order_id} leaves terminal status {order.status!r} for {new_status!r}"
        )
    try:
        await crud.update_order_status(order_id, new_status, when or datetime.now())
    except aiosqlite.Error as e:
        _logger.error(f"Status change for order #{order_id} failed: {e}")
        raise PersistenceError(f"Could not update order #{order_id}: {e}") from e

    _logger.info(f"Order #{order_id}: {order.status} -> {new_status}")
    return await crud.get_order(order_id)


async def change_quote_status(quote_id: int, new_status: str) -> models.QuoteRequest:
    if new_status not in models.QUOTE_STATUSES:
        raise ValidationError("status", f"unknown quote status {new_status!r}")
    quote = await crud.get_quote(quote_id)
    if quote is None:
        raise NotFoundError("quote", quote_id)
    try:
        await crud.update_quote_status(quote_id, new_status)
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not update quote #{quote_id}: {e}") from e
    _logger.info(f"Quote #{quote_id}: {quote.status} -> {new_status}")
    return await crud.get_quote(quote_id)
