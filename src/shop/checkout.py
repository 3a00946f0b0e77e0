"""
Order assembly: turns a cart, contact details and a delivery choice into a
persisted order with its line items.

The cart is never cleared here. Callers clear it only after ``place_order``
returns, so a failed write leaves the shopper's cart intact for a retry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiosqlite

from db import crud, models
from services import sms
from shop.cart import CartLedger
from shop.errors import PersistenceError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

TAX_RATE = 0.13  # Ontario HST
SHIPPING_SURCHARGE = 50.00

PROVINCES = ("ON", "QC", "BC", "AB", "MB", "SK", "NS", "NB", "NL", "PE")
_POSTAL_CODE = re.compile(r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$")


@dataclass(frozen=True)
class ContactInfo:
    name: str
    email: str
    phone: str
    company: str = ""


@dataclass(frozen=True)
class DeliverySelection:
    method: str = "pickup"
    address: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""

    @property
    def needs_address(self) -> bool:
        return self.method != "pickup"


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    tax: float
    shipping: float
    total: float


def compute_totals(subtotal: float, method: str) -> OrderTotals:
    subtotal = round(subtotal, 2)
    tax = round(subtotal * TAX_RATE, 2)
    shipping = SHIPPING_SURCHARGE if method == "shipping" else 0.00
    return OrderTotals(subtotal, tax, shipping, round(subtotal + tax + shipping, 2))


def validate_contact(contact: ContactInfo) -> None:
    if not contact.name.strip():
        raise ValidationError("name", "is required")
    if not contact.email.strip():
        raise ValidationError("email", "is required")
    if "@" not in contact.email:
        raise ValidationError("email", "is not a valid email address")
    if not contact.phone.strip():
        raise ValidationError("phone", "is required")


def validate_delivery(delivery: DeliverySelection) -> None:
    if delivery.method not in models.DELIVERY_METHODS:
        raise ValidationError("delivery_method", f"must be one of {', '.join(models.DELIVERY_METHODS)}")
    if not delivery.needs_address:
        return
    if not delivery.address.strip():
        raise ValidationError("address", "is required for delivery and shipping")
    if not delivery.city.strip():
        raise ValidationError("city", "is required for delivery and shipping")
    if not delivery.province.strip():
        raise ValidationError("province", "is required for delivery and shipping")
    if delivery.province.upper() not in PROVINCES:
        raise ValidationError("province", "is not a Canadian province")
    if not delivery.postal_code.strip():
        raise ValidationError("postal_code", "is required for delivery and shipping")
    if not _POSTAL_CODE.match(delivery.postal_code.strip()):
        raise ValidationError("postal_code", "must look like A1A 1A1")


async def place_order(
    cart: CartLedger,
    contact: ContactInfo,
    delivery: DeliverySelection,
    notes: str = "",
    when: Optional[datetime] = None,
    notify: bool = True,
) -> models.Order:
    """
    Validate, price and persist an order. Header and items are written in one
    transaction; on any database error nothing is stored and PersistenceError
    is raised with the original error as its cause.
    """
    if cart.is_empty:
        raise ValidationError("cart", "is empty")
    validate_contact(contact)
    validate_delivery(delivery)

    totals = compute_totals(cart.subtotal(), delivery.method)
    header = {
        "customer_name": contact.name.strip(),
        "customer_email": contact.email.strip(),
        "customer_phone": contact.phone.strip(),
        "customer_company": contact.company.strip(),
        "delivery_method": delivery.method,
        "delivery_address": delivery.address.strip() if delivery.needs_address else "",
        "delivery_city": delivery.city.strip() if delivery.needs_address else "",
        "delivery_province": delivery.province.strip().upper() if delivery.needs_address else "",
        "delivery_postal_code": (
            delivery.postal_code.strip().upper() if delivery.needs_address else ""
        ),
        "subtotal": totals.subtotal,
        "tax": totals.tax,
        "shipping": totals.shipping,
        "total": totals.total,
        "notes": notes.strip(),
    }
    # unit prices come from the cart snapshot, never from the catalog
    items = [
        {
            "product_id": line.product_id,
            "product_name": line.name,
            "product_sku": line.code,
            "quantity": line.quantity,
            "price": line.unit_price,
            "subtotal": line.line_total,
        }
        for line in cart
    ]

    when = when or datetime.now()
    try:
        order_id = await crud.create_order(header, items, when)
    except aiosqlite.Error as e:
        _logger.error(f"Order for {contact.email} was not saved: {e}")
        raise PersistenceError(f"Could not save your order: {e}") from e

    # committed from here on; a failed read must not be reported as a failed order
    try:
        order, order_items = await crud.get_order_detail(order_id)
    except aiosqlite.Error as e:
        _logger.warning(f"Order #{order_id} saved but could not be read back: {e}")
        stamp = when.replace(microsecond=0)
        order = models.Order(
            id=order_id, status="pending", created_at=stamp, updated_at=stamp, **header
        )
        order_items = [models.OrderItem(id=0, order_id=order_id, **item) for item in items]

    _logger.info(
        f"Order #{order.id} placed by {order.customer_email}: "
        f"{len(order_items)} line(s), total ${order.total:.2f}"
    )
    if notify:
        await sms.notify_new_order(order, order_items)
    return order
