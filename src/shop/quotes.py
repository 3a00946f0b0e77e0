from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import aiosqlite

from db import crud, models
from services import sms
from shop.cart import CartLedger
from shop.checkout import ContactInfo
from shop.errors import NotFoundError, PersistenceError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class Vehicle:
    year: str = ""
    make: str = ""
    model: str = ""

    def __str__(self) -> str:
        return " ".join(p for p in (self.year.strip(), self.make.strip(), self.model.strip()) if p)


def _validate_contact(contact: ContactInfo) -> None:
    # quotes only need a way to reach the customer back; phone is optional
    if not contact.name.strip():
        raise ValidationError("name", "is required")
    if not contact.email.strip() or "@" not in contact.email:
        raise ValidationError("email", "is not a valid email address")


def _row(contact: ContactInfo, product_id: Optional[int], quantity: int, message: str) -> Dict:
    return {
        "customer_name": contact.name.strip(),
        "customer_email": contact.email.strip(),
        "customer_phone": contact.phone.strip(),
        "customer_company": contact.company.strip(),
        "product_id": product_id,
        "quantity": quantity,
        "message": message.strip(),
    }


async def _store(rows: List[Dict], when: Optional[datetime]) -> List[models.QuoteRequest]:
    try:
        ids = await crud.create_quotes(rows, when or datetime.now())
    except aiosqlite.Error as e:
        _logger.error(f"Quote request not saved: {e}")
        raise PersistenceError(f"Could not save your quote request: {e}") from e
    quotes = [await crud.get_quote(qid) for qid in ids]
    _logger.info(f"{len(quotes)} quote request(s) from {rows[0]['customer_email']}")
    await sms.notify_new_quotes(quotes)
    return quotes


async def request_quote(
    contact: ContactInfo,
    product_id: int,
    quantity: int = 1,
    message: str = "",
    when: Optional[datetime] = None,
) -> models.QuoteRequest:
    """Quote for a single catalog item or truck."""
    _validate_contact(contact)
    if quantity < 1:
        raise ValidationError("quantity", "must be at least 1")
    if await crud.get_product(product_id) is None:
        raise NotFoundError("product", product_id)
    quotes = await _store([_row(contact, product_id, quantity, message)], when)
    return quotes[0]


async def request_cart_quote(
    cart: CartLedger, contact: ContactInfo, message: str = "", when: Optional[datetime] = None
) -> List[models.QuoteRequest]:
    """One quote row per cart line, all written together. The caller clears the cart."""
    if cart.is_empty:
        raise ValidationError("cart", "is empty")
    _validate_contact(contact)
    rows = [_row(contact, line.product_id, line.quantity, message) for line in cart]
    return await _store(rows, when)


def compose_part_request(part_description: str, vehicle: Vehicle, quantity: int, info: str) -> str:
    return (
        "PART REQUEST - Not in inventory\n\n"
        f"Part Description: {part_description.strip()}\n"
        f"Vehicle: {vehicle}\n"
        f"Quantity: {quantity}\n\n"
        f"Additional Info: {info.strip()}"
    )


async def request_part(
    contact: ContactInfo,
    part_description: str,
    vehicle: Vehicle,
    quantity: int = 1,
    message: str = "",
    when: Optional[datetime] = None,
) -> models.QuoteRequest:
    """Request for a part the catalog does not carry; stored without a product reference."""
    _validate_contact(contact)
    if not part_description.strip():
        raise ValidationError("part_description", "is required")
    if quantity < 1:
        raise ValidationError("quantity", "must be at least 1")
    body = compose_part_request(part_description, vehicle, quantity, message)
    quotes = await _store([_row(contact, None, quantity, body)], when)
    return quotes[0]
