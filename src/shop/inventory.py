from __future__ import annotations

from typing import Dict, Optional, Sequence

import aiosqlite

from db import crud, models
from services.vin import normalize_vin
from shop.errors import NotFoundError, PersistenceError, ValidationError
from shop.pricing import customer_price_for
from utils.logger import get_logger

_logger = get_logger(__name__)


def _check_price(value: float) -> float:
    if value is None or value < 0:
        raise ValidationError("retail_price", "must be a non-negative amount")
    return round(float(value), 2)


def _check_stock(value: str) -> str:
    if value not in models.STOCK_STATUSES:
        raise ValidationError("stock_status", f"must be one of {', '.join(models.STOCK_STATUSES)}")
    return value


async def update_pricing_and_stock(
    product_id: int,
    retail_price: Optional[float] = None,
    stock_status: Optional[str] = None,
) -> models.Product:
    """A new retail price also resets the customer price to the standard discount."""
    retail = _check_price(retail_price) if retail_price is not None else None
    stock = _check_stock(stock_status) if stock_status is not None else None
    if retail is None and stock is None:
        raise ValidationError("product", "nothing to update")
    try:
        updated = await crud.update_product_price_stock(
            product_id,
            retail,
            customer_price_for(retail) if retail is not None else None,
            stock,
        )
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not update product #{product_id}: {e}") from e
    if not updated:
        raise NotFoundError("product", product_id)
    _logger.info(f"Product #{product_id} updated (retail={retail}, stock={stock})")
    return await crud.get_product(product_id)


async def add_product(
    kind: str,
    name: str,
    retail_price: float,
    description: str = "",
    sku: Optional[str] = None,
    vin: Optional[str] = None,
    category_id: Optional[int] = None,
    stock_status: str = "in_stock",
    images: Sequence[str] = (),
    attributes: Optional[Dict[str, str]] = None,
) -> models.Product:
    """Admin intake of a part (needs a sku) or a truck (needs a valid VIN)."""
    if kind not in models.PRODUCT_KINDS:
        raise ValidationError("kind", "must be 'part' or 'truck'")
    if not name.strip():
        raise ValidationError("name", "is required")
    retail = _check_price(retail_price)
    _check_stock(stock_status)
    if kind == "truck":
        vin, sku = normalize_vin(vin or ""), None
    else:
        sku, vin = (sku or "").strip().upper(), None
        if not sku:
            raise ValidationError("sku", "is required for parts")
    if category_id is not None and await crud.get_category(category_id) is None:
        raise ValidationError("category_id", "is not a known category")
    try:
        product_id = await crud.create_product(
            kind=kind,
            name=name.strip(),
            description=description.strip(),
            retail_price=retail,
            customer_price=customer_price_for(retail),
            stock_status=stock_status,
            sku=sku,
            vin=vin,
            category_id=category_id,
            images=images,
            attributes=attributes,
        )
    except aiosqlite.IntegrityError as e:
        if "UNIQUE" not in str(e):
            raise PersistenceError(f"Could not save product: {e}") from e
        field = "vin" if kind == "truck" else "sku"
        raise ValidationError(field, "is already in the catalog") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not save product: {e}") from e
    _logger.info(f"Added {kind} #{product_id} {name!r}")
    return await crud.get_product(product_id)


def _check_category_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "is required")
    return name


async def create_category(name: str, description: str = "") -> models.Category:
    name = _check_category_name(name)
    try:
        category_id = await crud.create_category(name, description.strip())
    except aiosqlite.IntegrityError as e:
        raise ValidationError("name", "is already used by another category") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not save category: {e}") from e
    _logger.info(f"Category #{category_id} {name!r} created")
    return await crud.get_category(category_id)


async def update_category(category_id: int, name: str, description: str = "") -> models.Category:
    name = _check_category_name(name)
    try:
        updated = await crud.update_category(category_id, name, description.strip())
    except aiosqlite.IntegrityError as e:
        raise ValidationError("name", "is already used by another category") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not update category #{category_id}: {e}") from e
    if not updated:
        raise NotFoundError("category", category_id)
    return await crud.get_category(category_id)


async def delete_category(category_id: int) -> None:
    """Products in the category stay in the catalog without a category."""
    try:
        deleted = await crud.delete_category(category_id)
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not delete category #{category_id}: {e}") from e
    if not deleted:
        raise NotFoundError("category", category_id)
    _logger.info(f"Category #{category_id} deleted")
