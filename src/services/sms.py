# owner notifications over the Twilio REST API; best-effort, never raises
from __future__ import annotations

from typing import Optional, Sequence

import httpx

from db import models
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def sms_enabled() -> bool:
    return all(
        (
            config.TWILIO_ACCOUNT_SID,
            config.TWILIO_AUTH_TOKEN,
            config.TWILIO_FROM_NUMBER,
            config.OWNER_PHONE_NUMBER,
        )
    )


def order_notification_text(order: models.Order, items: Sequence[models.OrderItem]) -> str:
    lines = [
        f"NEW ORDER #{order.id}",
        "",
        f"Customer: {order.customer_name}",
        f"Email: {order.customer_email}",
        f"Phone: {order.customer_phone}",
        "",
        "Items:",
    ]
    lines += [f"- {i.product_name} (x{i.quantity}) ${i.price:.2f}" for i in items]
    lines += [
        "",
        f"Subtotal: ${order.subtotal:.2f}",
        f"Tax: ${order.tax:.2f}",
    ]
    if order.shipping:
        lines.append(f"Shipping: ${order.shipping:.2f}")
    lines += [f"TOTAL: ${order.total:.2f}", "", f"Delivery: {order.delivery_method}"]
    if order.delivery_address:
        lines.append(
            f"Address: {order.delivery_address}, {order.delivery_city} "
            f"{order.delivery_province} {order.delivery_postal_code}"
        )
    return "\n".join(lines)


def quote_notification_text(quotes: Sequence[models.QuoteRequest]) -> str:
    first = quotes[0]
    lines = [
        "NEW QUOTE REQUEST",
        "",
        f"Customer: {first.customer_name}",
        f"Email: {first.customer_email}",
    ]
    if first.customer_company:
        lines.append(f"Company: {first.customer_company}")
    lines.append(f"Phone: {first.customer_phone or 'Not provided'}")
    lines.append("")
    if len(quotes) == 1:
        lines.append(f"Part: {first.product_name or 'Not in inventory'}")
        lines.append(f"Quantity: {first.quantity}")
    else:
        lines.append("Items:")
        lines += [f"- {q.product_name or 'part'} (x{q.quantity})" for q in quotes]
    if first.message:
        lines += ["", f"Message: {first.message}"]
    return "\n".join(lines)


async def send_sms(
    body: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> bool:
    """Text the shop owner. Returns False when disabled or when Twilio rejects the call."""
    if not sms_enabled():
        _logger.debug("SMS notifications disabled (no Twilio credentials).")
        return False
    url = TWILIO_MESSAGES_URL.format(sid=config.TWILIO_ACCOUNT_SID)
    try:
        async with httpx.AsyncClient(
            timeout=config.HTTP_TIMEOUT, transport=transport
        ) as client:
            response = await client.post(
                url,
                data={
                    "To": config.OWNER_PHONE_NUMBER,
                    "From": config.TWILIO_FROM_NUMBER,
                    "Body": body,
                },
                auth=(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN),
            )
        response.raise_for_status()
    except httpx.HTTPError as e:
        _logger.warning(f"SMS notification failed: {e}")
        return False
    _logger.info("SMS notification sent.")
    return True


async def notify_new_order(order: models.Order, items: Sequence[models.OrderItem]) -> bool:
    return await send_sms(order_notification_text(order, items))


async def notify_new_quotes(quotes: Sequence[models.QuoteRequest]) -> bool:
    if not quotes:
        return False
    return await send_sms(quote_notification_text(quotes))
