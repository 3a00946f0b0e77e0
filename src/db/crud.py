# src/db/crud.py
from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from sqlite3 import Row
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from db import models
from db.database import connect, transaction

PRODUCT_SORTS = {
    "name-asc": "name COLLATE NOCASE ASC, id ASC",
    "name-desc": "name COLLATE NOCASE DESC, id ASC",
    "price-asc": "retail_price ASC, id ASC",
    "price-desc": "retail_price DESC, id ASC",
    "date-newest": "created_at DESC, id DESC",
    "date-oldest": "created_at ASC, id ASC",
}

_PRODUCT_COLS = (
    "id, kind, name, description, sku, vin, category_id, retail_price, "
    "customer_price, stock_status, images, attributes, created_at"
)
_CUSTOMER_COLS = (
    "id, name, email, company, phone, subscribed, unsubscribe_token, "
    "identity_id, is_admin, created_at"
)
_ORDER_COLS = (
    "id, customer_name, customer_email, customer_phone, customer_company, "
    "delivery_method, delivery_address, delivery_city, delivery_province, "
    "delivery_postal_code, subtotal, tax, shipping, total, status, notes, "
    "created_at, updated_at"
)
_CAMPAIGN_COLS = "id, name, subject, headline, status, recipients, sent_at, created_at"


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_product(row: Row) -> models.Product:
    return models.Product(
        id=row["id"],
        kind=row["kind"],
        name=row["name"],
        description=row["description"],
        sku=row["sku"],
        vin=row["vin"],
        category_id=row["category_id"],
        retail_price=float(row["retail_price"]),
        customer_price=float(row["customer_price"]),
        stock_status=row["stock_status"],
        images=tuple(json.loads(row["images"] or "[]")),
        attributes=json.loads(row["attributes"] or "{}"),
        created_at=_ts(row["created_at"]),
    )


def _row_to_customer(row: Row) -> models.Customer:
    return models.Customer(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        company=row["company"],
        phone=row["phone"],
        subscribed=bool(row["subscribed"]),
        unsubscribe_token=row["unsubscribe_token"],
        identity_id=row["identity_id"],
        is_admin=bool(row["is_admin"]),
        created_at=_ts(row["created_at"]),
    )


def _row_to_order(row: Row) -> models.Order:
    return models.Order(
        id=row["id"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        customer_phone=row["customer_phone"],
        customer_company=row["customer_company"],
        delivery_method=row["delivery_method"],
        delivery_address=row["delivery_address"],
        delivery_city=row["delivery_city"],
        delivery_province=row["delivery_province"],
        delivery_postal_code=row["delivery_postal_code"],
        subtotal=float(row["subtotal"]),
        tax=float(row["tax"]),
        shipping=float(row["shipping"]),
        total=float(row["total"]),
        status=row["status"],
        notes=row["notes"],
        created_at=_ts(row["created_at"]),
        updated_at=_ts(row["updated_at"]),
    )


def _row_to_order_item(row: Row) -> models.OrderItem:
    return models.OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        product_name=row["product_name"],
        product_sku=row["product_sku"],
        quantity=row["quantity"],
        price=float(row["price"]),
        subtotal=float(row["subtotal"]),
    )


def _row_to_quote(row: Row) -> models.QuoteRequest:
    return models.QuoteRequest(
        id=row["id"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        customer_phone=row["customer_phone"],
        customer_company=row["customer_company"],
        product_id=row["product_id"],
        quantity=row["quantity"],
        message=row["message"],
        status=row["status"],
        created_at=_ts(row["created_at"]),
        product_name=row["product_name"],
    )


def _row_to_campaign(row: Row) -> models.Campaign:
    return models.Campaign(
        id=row["id"],
        name=row["name"],
        subject=row["subject"],
        headline=row["headline"],
        status=row["status"],
        recipients=row["recipients"],
        sent_at=_ts(row["sent_at"]),
        created_at=_ts(row["created_at"]),
    )


def _row_to_event(row: Row) -> models.TrackingEvent:
    return models.TrackingEvent(
        id=row["id"],
        campaign_id=row["campaign_id"],
        customer_email=row["customer_email"],
        event_type=row["event_type"],
        product_id=row["product_id"],
        created_at=_ts(row["created_at"]),
    )


# ---------------------------
# Identities & Customers
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no identity or customer already uses the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT 1 FROM identities WHERE email = ?
            UNION ALL
            SELECT 1 FROM customers WHERE email = ?
            LIMIT 1;
            """,
            (email, email),
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def register_customer(
    identity_id: str,
    password_hash: str,
    name: str,
    email: str,
    phone: str,
    company: str,
    unsubscribe_token: str,
) -> int:
    """
    Create the identity and its customer profile in one transaction.
    Returns the new customer id.
    """
    async with transaction() as conn:
        await conn.execute(
            "INSERT INTO identities(id, email, password_hash) VALUES (?, ?, ?);",
            (identity_id, email, password_hash),
        )
        cur = await conn.execute(
            """
            INSERT INTO customers(name, email, company, phone, subscribed,
                                  unsubscribe_token, identity_id, is_admin, created_at)
            VALUES (?, ?, ?, ?, 1, ?, ?, 0, ?);
            """,
            (name, email, company, phone, unsubscribe_token, identity_id, _now().isoformat()),
        )
        customer_id = cur.lastrowid
        await cur.close()
    return customer_id


async def get_password_hash(email: str) -> Optional[Tuple[str, str]]:
    """Return (identity_id, password_hash) for an email, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, password_hash FROM identities WHERE email = ?;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return row["id"], row["password_hash"]


async def get_customer(customer_id: int) -> Optional[models.Customer]:
    """Return the Customer row for a given id, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_CUSTOMER_COLS} FROM customers WHERE id = ?;", (customer_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_customer(row) if row else None


async def get_customer_by_identity(identity_id: str) -> Optional[models.Customer]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_CUSTOMER_COLS} FROM customers WHERE identity_id = ?;",
            (identity_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_customer(row) if row else None


async def get_customer_by_token(token: str) -> Optional[models.Customer]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_CUSTOMER_COLS} FROM customers WHERE unsubscribe_token = ?;",
            (token,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_customer(row) if row else None


async def list_customers(keyword: str = "") -> List[models.Customer]:
    """Every customer, newest first; ``keyword`` filters on name, email or company."""
    sql = f"SELECT {_CUSTOMER_COLS} FROM customers"
    params: List[object] = []
    if keyword.strip():
        like = f"%{keyword.strip().lower()}%"
        sql += " WHERE lower(name) LIKE ? OR lower(email) LIKE ? OR lower(company) LIKE ?"
        params = [like, like, like]
    async with connect() as conn:
        cur = await conn.execute(sql + " ORDER BY created_at DESC, id DESC;", params)
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_customer(r) for r in rows]


async def list_subscribed_customers() -> List[models.Customer]:
    """Campaign audience: every customer with subscribed = 1, oldest first."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_CUSTOMER_COLS} FROM customers WHERE subscribed = 1 ORDER BY id;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_customer(r) for r in rows]


async def update_customer_profile(
    customer_id: int, name: str, phone: str, company: str, subscribed: bool
) -> bool:
    """Update editable profile fields. Return True if a row was updated."""
    async with connect() as conn:
        res = await conn.execute(
            """
            UPDATE customers
            SET name = ?, phone = ?, company = ?, subscribed = ?
            WHERE id = ?;
            """,
            (name, phone, company, int(subscribed), customer_id),
        )
        await conn.commit()
        return res.rowcount > 0


async def admin_update_customer(
    customer_id: int, name: str, email: str, phone: str, company: str, subscribed: bool
) -> bool:
    """
    Back-office edit. The login identity follows an email change so the
    customer can still sign in. Return True if a row was updated.
    """
    async with transaction() as conn:
        res = await conn.execute(
            """
            UPDATE customers
            SET name = ?, email = ?, phone = ?, company = ?, subscribed = ?
            WHERE id = ?;
            """,
            (name, email, phone, company, int(subscribed), customer_id),
        )
        if res.rowcount == 0:
            return False
        await conn.execute(
            """
            UPDATE identities SET email = ?
            WHERE id = (SELECT identity_id FROM customers WHERE id = ?);
            """,
            (email, customer_id),
        )
    return True


async def delete_customer(customer_id: int) -> bool:
    """Remove the customer profile and its login identity. Orders keep their contact copy."""
    async with transaction() as conn:
        cur = await conn.execute(
            "SELECT identity_id FROM customers WHERE id = ?;", (customer_id,)
        )
        row = await cur.fetchone()
        await cur.close()
        if row is None:
            return False
        await conn.execute("DELETE FROM customers WHERE id = ?;", (customer_id,))
        if row["identity_id"]:
            await conn.execute("DELETE FROM identities WHERE id = ?;", (row["identity_id"],))
    return True


async def set_subscribed_by_token(token: str, subscribed: bool) -> bool:
    async with connect() as conn:
        res = await conn.execute(
            "UPDATE customers SET subscribed = ? WHERE unsubscribe_token = ?;",
            (int(subscribed), token),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Catalog
# ---------------------------


async def list_categories() -> List[models.Category]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, description FROM categories ORDER BY name;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.Category(id=r["id"], name=r["name"], description=r["description"])
        for r in rows
    ]


async def get_category(category_id: int) -> Optional[models.Category]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, description FROM categories WHERE id = ?;", (category_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Category(id=row["id"], name=row["name"], description=row["description"])


async def count_products_by_category() -> Dict[int, int]:
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT category_id, COUNT(*) AS n FROM products
            WHERE category_id IS NOT NULL
            GROUP BY category_id;
            """
        )
        rows = await cur.fetchall()
        await cur.close()
    return {r["category_id"]: r["n"] for r in rows}


async def create_category(name: str, description: str) -> int:
    async with connect() as conn:
        cur = await conn.execute(
            "INSERT INTO categories(name, description) VALUES (?, ?);", (name, description)
        )
        category_id = cur.lastrowid
        await cur.close()
        await conn.commit()
    return category_id


async def update_category(category_id: int, name: str, description: str) -> bool:
    async with connect() as conn:
        res = await conn.execute(
            "UPDATE categories SET name = ?, description = ? WHERE id = ?;",
            (name, description, category_id),
        )
        await conn.commit()
        return res.rowcount > 0


async def delete_category(category_id: int) -> bool:
    """Products in the category are kept and become uncategorized."""
    async with connect() as conn:
        res = await conn.execute("DELETE FROM categories WHERE id = ?;", (category_id,))
        await conn.commit()
        return res.rowcount > 0


async def search_products(
    keyword: str = "",
    category_id: Optional[int] = None,
    stock_status: Optional[str] = None,
    kind: Optional[str] = None,
    sort: str = "name-asc",
    page: int = 1,
    page_size: int = 10,
) -> Tuple[List[models.Product], int]:
    """
    Case-insensitive search over name/description/sku/vin with optional filters.
    An empty keyword matches every product.
    Returns (products for page, total_count).
    """
    if sort not in PRODUCT_SORTS:
        raise ValueError(f"Unknown sort order: {sort}")

    conditions: List[str] = []
    params: List[object] = []

    phrase = (keyword or "").strip().lower()
    if phrase:
        like = f"%{phrase}%"
        conditions.append(
            "(LOWER(name) LIKE ? OR LOWER(description) LIKE ? "
            "OR LOWER(COALESCE(sku, '')) LIKE ? OR LOWER(COALESCE(vin, '')) LIKE ?)"
        )
        params.extend([like, like, like, like])
    if category_id is not None:
        conditions.append("category_id = ?")
        params.append(category_id)
    if stock_status:
        conditions.append("stock_status = ?")
        params.append(stock_status)
    if kind:
        conditions.append("kind = ?")
        params.append(kind)

    where_clause = " AND ".join(conditions) if conditions else "1 = 1"

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT COUNT(*) FROM products WHERE {where_clause};", tuple(params)
        )
        total = (await cur.fetchone())[0]
        await cur.close()

        offset = max(page - 1, 0) * page_size
        cur = await conn.execute(
            f"""
            SELECT {_PRODUCT_COLS}
            FROM products
            WHERE {where_clause}
            ORDER BY {PRODUCT_SORTS[sort]}
            LIMIT ? OFFSET ?;
            """,
            tuple(params + [page_size, offset]),
        )
        rows = await cur.fetchall()
        await cur.close()

    return [_row_to_product(r) for r in rows], total


async def get_product(product_id: int) -> Optional[models.Product]:
    """Fetch a product by id."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLS} FROM products WHERE id = ?;", (product_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_product(row) if row else None


async def get_products(product_ids: Iterable[int]) -> Dict[int, models.Product]:
    """Fetch several products at once, keyed by id; unknown ids are left out."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}
    marks = ", ".join("?" * len(ids))
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLS} FROM products WHERE id IN ({marks});", tuple(ids)
        )
        rows = await cur.fetchall()
        await cur.close()
    return {r["id"]: _row_to_product(r) for r in rows}


async def create_product(
    kind: str,
    name: str,
    description: str,
    retail_price: float,
    customer_price: float,
    stock_status: str = "in_stock",
    sku: Optional[str] = None,
    vin: Optional[str] = None,
    category_id: Optional[int] = None,
    images: Sequence[str] = (),
    attributes: Optional[Dict[str, str]] = None,
) -> int:
    """Insert a part or truck and return its id."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            INSERT INTO products(kind, name, description, sku, vin, category_id,
                                 retail_price, customer_price, stock_status,
                                 images, attributes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                kind,
                name,
                description,
                sku,
                vin,
                category_id,
                retail_price,
                customer_price,
                stock_status,
                json.dumps(list(images)),
                json.dumps(attributes or {}),
                _now().isoformat(),
            ),
        )
        product_id = cur.lastrowid
        await cur.close()
        await conn.commit()
    return product_id


async def update_product_price_stock(
    product_id: int,
    new_retail_price: Optional[float],
    new_customer_price: Optional[float],
    new_stock_status: Optional[str],
) -> bool:
    """
    Update prices and/or stock status (only provided fields). Return True if a row was updated.
    """
    if new_retail_price is None and new_customer_price is None and new_stock_status is None:
        return False
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT retail_price, customer_price, stock_status FROM products WHERE id = ?;",
            (product_id,),
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return False
        retail = new_retail_price if new_retail_price is not None else row["retail_price"]
        customer = (
            new_customer_price if new_customer_price is not None else row["customer_price"]
        )
        stock = new_stock_status if new_stock_status is not None else row["stock_status"]
        res = await conn.execute(
            """
            UPDATE products
            SET retail_price = ?, customer_price = ?, stock_status = ?
            WHERE id = ?;
            """,
            (retail, customer, stock, product_id),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Orders
# ---------------------------


async def create_order(
    header: Dict[str, object], items: Sequence[Dict[str, object]], when: datetime
) -> int:
    """
    Insert the order header and all of its items atomically and return the order id.
    If any item is rejected, nothing is written.
    """
    stamp = when.replace(microsecond=0).isoformat()
    async with transaction() as conn:
        cur = await conn.execute(
            """
            INSERT INTO orders(customer_name, customer_email, customer_phone,
                               customer_company, delivery_method, delivery_address,
                               delivery_city, delivery_province, delivery_postal_code,
                               subtotal, tax, shipping, total, status, notes,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?);
            """,
            (
                header["customer_name"],
                header["customer_email"],
                header["customer_phone"],
                header.get("customer_company", ""),
                header["delivery_method"],
                header.get("delivery_address", ""),
                header.get("delivery_city", ""),
                header.get("delivery_province", ""),
                header.get("delivery_postal_code", ""),
                header["subtotal"],
                header["tax"],
                header["shipping"],
                header["total"],
                header.get("notes", ""),
                stamp,
                stamp,
            ),
        )
        order_id = cur.lastrowid
        await cur.close()

        await conn.executemany(
            """
            INSERT INTO order_items(order_id, product_id, product_name, product_sku,
                                    quantity, price, subtotal)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    order_id,
                    item.get("product_id"),
                    item["product_name"],
                    item["product_sku"],
                    item["quantity"],
                    item["price"],
                    item["subtotal"],
                )
                for item in items
            ],
        )
    return order_id


async def list_orders(
    status: Optional[str] = None,
    since: Optional[date] = None,
    until: Optional[date] = None,
    page: int = 1,
    page_size: int = 10,
) -> Tuple[List[models.Order], int]:
    """
    List orders newest first, optionally filtered by status and by creation date
    (inclusive on both ends). Return (orders_for_page, total_count).
    """
    conditions: List[str] = []
    params: List[object] = []
    if status:
        conditions.append("status = ?")
        params.append(status)
    if since is not None:
        conditions.append("date(created_at) >= date(?)")
        params.append(since.isoformat())
    if until is not None:
        conditions.append("date(created_at) <= date(?)")
        params.append(until.isoformat())
    where_clause = " AND ".join(conditions) if conditions else "1 = 1"

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT COUNT(*) FROM orders WHERE {where_clause};", tuple(params)
        )
        total = (await cur.fetchone())[0]
        await cur.close()
        offset = max(page - 1, 0) * page_size
        cur = await conn.execute(
            f"""
            SELECT {_ORDER_COLS}
            FROM orders
            WHERE {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?;
            """,
            tuple(params + [page_size, offset]),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_order(r) for r in rows], total


async def list_orders_for_email(email: str) -> List[models.Order]:
    """A shopper's order history, matched on the contact email captured at checkout."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {_ORDER_COLS}
            FROM orders
            WHERE customer_email = ? COLLATE NOCASE
            ORDER BY created_at DESC, id DESC;
            """,
            (email,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_order(r) for r in rows]


async def get_order(order_id: int) -> Optional[models.Order]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_ORDER_COLS} FROM orders WHERE id = ?;", (order_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_order(row) if row else None


async def get_order_detail(
    order_id: int,
) -> Tuple[Optional[models.Order], List[models.OrderItem]]:
    """
    Return (order, items) for a specific order; (None, []) if it does not exist.
    """
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_ORDER_COLS} FROM orders WHERE id = ?;", (order_id,)
        )
        order_row = await cur.fetchone()
        await cur.close()
        if not order_row:
            return None, []
        cur = await conn.execute(
            """
            SELECT id, order_id, product_id, product_name, product_sku, quantity, price, subtotal
            FROM order_items
            WHERE order_id = ?
            ORDER BY id;
            """,
            (order_id,),
        )
        item_rows = await cur.fetchall()
        await cur.close()
    return _row_to_order(order_row), [_row_to_order_item(r) for r in item_rows]


async def update_order_status(order_id: int, status: str, when: datetime) -> bool:
    """Set the status and updated_at of an order. Return True if a row was updated."""
    async with connect() as conn:
        res = await conn.execute(
            "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?;",
            (status, when.replace(microsecond=0).isoformat(), order_id),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Quote Requests
# ---------------------------


async def create_quotes(quotes: Sequence[Dict[str, object]], when: datetime) -> List[int]:
    """Insert one or more quote requests in a single transaction; return their ids."""
    stamp = when.replace(microsecond=0).isoformat()
    ids: List[int] = []
    async with transaction() as conn:
        for q in quotes:
            cur = await conn.execute(
                """
                INSERT INTO quote_requests(customer_name, customer_email, customer_phone,
                                           customer_company, product_id, quantity,
                                           message, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 'new', ?);
                """,
                (
                    q["customer_name"],
                    q["customer_email"],
                    q.get("customer_phone", ""),
                    q.get("customer_company", ""),
                    q.get("product_id"),
                    q["quantity"],
                    q.get("message", ""),
                    stamp,
                ),
            )
            ids.append(cur.lastrowid)
            await cur.close()
    return ids


_QUOTE_SELECT = """
    SELECT q.id, q.customer_name, q.customer_email, q.customer_phone,
           q.customer_company, q.product_id, q.quantity, q.message, q.status,
           q.created_at, p.name AS product_name
    FROM quote_requests q
    LEFT JOIN products p ON p.id = q.product_id
"""


async def list_quotes(
    status: Optional[str] = None, limit: Optional[int] = None
) -> List[models.QuoteRequest]:
    """Quote requests, newest first, with the product name when one is referenced."""
    sql = _QUOTE_SELECT
    params: List[object] = []
    if status:
        sql += " WHERE q.status = ?"
        params.append(status)
    sql += " ORDER BY q.created_at DESC, q.id DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    async with connect() as conn:
        cur = await conn.execute(sql + ";", tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_quote(r) for r in rows]


async def get_quote(quote_id: int) -> Optional[models.QuoteRequest]:
    async with connect() as conn:
        cur = await conn.execute(_QUOTE_SELECT + " WHERE q.id = ?;", (quote_id,))
        row = await cur.fetchone()
        await cur.close()
    return _row_to_quote(row) if row else None


async def update_quote_status(quote_id: int, status: str) -> bool:
    async with connect() as conn:
        res = await conn.execute(
            "UPDATE quote_requests SET status = ? WHERE id = ?;", (status, quote_id)
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Email Campaigns
# ---------------------------


async def create_campaign(
    name: str, subject: str, headline: str, product_ids: Sequence[int], when: datetime
) -> int:
    """
    Insert a draft campaign and its product list (display_order from 1) atomically.
    Returns the campaign id.
    """
    async with transaction() as conn:
        cur = await conn.execute(
            """
            INSERT INTO email_campaigns(name, subject, headline, status, recipients, created_at)
            VALUES (?, ?, ?, 'draft', 0, ?);
            """,
            (name, subject, headline, when.replace(microsecond=0).isoformat()),
        )
        campaign_id = cur.lastrowid
        await cur.close()
        await conn.executemany(
            """
            INSERT INTO email_campaign_products(campaign_id, product_id, display_order)
            VALUES (?, ?, ?);
            """,
            [(campaign_id, pid, idx) for idx, pid in enumerate(product_ids, start=1)],
        )
    return campaign_id


async def list_campaigns(limit: Optional[int] = None) -> List[models.Campaign]:
    sql = f"SELECT {_CAMPAIGN_COLS} FROM email_campaigns ORDER BY created_at DESC, id DESC"
    params: Tuple = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (limit,)
    async with connect() as conn:
        cur = await conn.execute(sql + ";", params)
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_campaign(r) for r in rows]


async def get_campaign(campaign_id: int) -> Optional[models.Campaign]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_CAMPAIGN_COLS} FROM email_campaigns WHERE id = ?;", (campaign_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_campaign(row) if row else None


async def get_campaign_products(campaign_id: int) -> List[models.Product]:
    """Products featured in a campaign, in display order."""
    cols = ", ".join(f"p.{c.strip()}" for c in _PRODUCT_COLS.split(","))
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {cols}
            FROM email_campaign_products cp
            JOIN products p ON p.id = cp.product_id
            WHERE cp.campaign_id = ?
            ORDER BY cp.display_order;
            """,
            (campaign_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(r) for r in rows]


async def mark_campaign_sent(campaign_id: int, recipients: int, when: datetime) -> bool:
    async with connect() as conn:
        res = await conn.execute(
            """
            UPDATE email_campaigns
            SET status = 'sent', recipients = ?, sent_at = ?
            WHERE id = ?;
            """,
            (recipients, when.replace(microsecond=0).isoformat(), campaign_id),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Tracking
# ---------------------------


async def record_open(campaign_id: int, email: str, when: datetime) -> None:
    """Append an open event; repeated opens each add a row."""
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO email_tracking(campaign_id, customer_email, event_type, product_id, created_at)
            VALUES (?, ?, 'open', NULL, ?);
            """,
            (campaign_id, email, when.isoformat()),
        )
        await conn.commit()


async def record_click(campaign_id: int, email: str, product_id: int, when: datetime) -> None:
    """Append a click event for one product link."""
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO email_tracking(campaign_id, customer_email, event_type, product_id, created_at)
            VALUES (?, ?, 'click', ?, ?);
            """,
            (campaign_id, email, product_id, when.isoformat()),
        )
        await conn.commit()


async def list_tracking_events(campaign_id: int) -> List[models.TrackingEvent]:
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, campaign_id, customer_email, event_type, product_id, created_at
            FROM email_tracking
            WHERE campaign_id = ?
            ORDER BY id;
            """,
            (campaign_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_event(r) for r in rows]


# ---------------------------
# Back Office Reports
# ---------------------------


async def dashboard_metrics(as_of: date) -> Dict[str, object]:
    """
    Headline counts for the admin dashboard plus revenue of non-cancelled orders
    over the previous 7 days (as_of - 7d .. as_of).
    """
    start_date = as_of - timedelta(days=7)
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM products) AS products,
                (SELECT COUNT(*) FROM customers) AS customers,
                (SELECT COUNT(*) FROM customers WHERE subscribed = 1) AS subscribed,
                (SELECT COUNT(*) FROM email_campaigns) AS campaigns,
                (SELECT COUNT(*) FROM quote_requests) AS quotes,
                (SELECT COUNT(*) FROM quote_requests WHERE status = 'new') AS new_quotes;
            """
        )
        counts = await cur.fetchone()
        await cur.close()

        cur = await conn.execute("SELECT status, COUNT(*) FROM orders GROUP BY status;")
        status_rows = await cur.fetchall()
        await cur.close()

        cur = await conn.execute(
            """
            SELECT COUNT(*), COALESCE(SUM(total), 0.0)
            FROM orders
            WHERE status != 'cancelled'
              AND date(?) <= date(created_at) AND date(created_at) <= date(?);
            """,
            (start_date.isoformat(), as_of.isoformat()),
        )
        weekly = await cur.fetchone()
        await cur.close()

    orders_by_status = {s: 0 for s in models.ORDER_STATUSES}
    for status, cnt in status_rows:
        orders_by_status[status] = int(cnt)
    return {
        "total_products": int(counts["products"]),
        "total_customers": int(counts["customers"]),
        "subscribed_customers": int(counts["subscribed"]),
        "total_campaigns": int(counts["campaigns"]),
        "total_quotes": int(counts["quotes"]),
        "new_quotes": int(counts["new_quotes"]),
        "orders_by_status": orders_by_status,
        "weekly_orders": int(weekly[0] or 0),
        "weekly_revenue": round(float(weekly[1] or 0.0), 2),
    }


async def top_products_by_orders(
    k: int = 3,
    include_ties_at_k: bool = True,
) -> List[Tuple[str, int]]:
    """
    Best sellers by count of distinct orders they appear in: [(product_name, order_count), ...]
    Cancelled orders are ignored. If include_ties_at_k is True, include all products
    tied at the kth position.
    """
    if k < 1:
        return []
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT oi.product_name, COUNT(DISTINCT oi.order_id) AS order_count
            FROM order_items oi
            JOIN orders o ON o.id = oi.order_id
            WHERE o.status != 'cancelled'
            GROUP BY oi.product_name
            ORDER BY order_count DESC, oi.product_name;
            """
        )
        rows = await cur.fetchall()
        await cur.close()
    if not rows:
        return []
    if not include_ties_at_k:
        rows = rows[:k]
    else:
        threshold = rows[min(k, len(rows)) - 1][1]
        rows = [r for r in rows if r[1] >= threshold]
    return [(str(r[0]), int(r[1])) for r in rows]
