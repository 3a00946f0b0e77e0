from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

import aiosqlite

from db import crud, models
from shop.errors import NotFoundError, PersistenceError, ValidationError
from shop.pricing import Viewer
from utils.logger import get_logger

_logger = get_logger(__name__)

PBKDF2_ITERATIONS = 120_000
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, digest = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), int(iterations)
    ).hex()
    return hmac.compare_digest(candidate, digest)


async def signup(
    name: str, email: str, password: str, phone: str = "", company: str = ""
) -> models.Customer:
    """Register an identity plus its customer profile; new customers are subscribed."""
    name, email = name.strip(), email.strip().lower()
    if not name:
        raise ValidationError("name", "is required")
    if not email or "@" not in email:
        raise ValidationError("email", "is not a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"must be at least {MIN_PASSWORD_LENGTH} characters")
    if not await crud.email_available(email):
        raise ValidationError("email", "is already registered")

    try:
        customer_id = await crud.register_customer(
            identity_id=str(uuid.uuid4()),
            password_hash=hash_password(password),
            name=name,
            email=email,
            phone=phone.strip(),
            company=company.strip(),
            unsubscribe_token=secrets.token_urlsafe(24),
        )
    except aiosqlite.IntegrityError as e:
        # lost a race with another signup for the same email
        raise ValidationError("email", "is already registered") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not create account: {e}") from e
    _logger.info(f"New customer #{customer_id} <{email}>")
    return await crud.get_customer(customer_id)


async def authenticate(email: str, password: str) -> Optional[Viewer]:
    found = await crud.get_password_hash(email.strip())
    if found is None:
        _logger.info(f"Login failed for unknown email {email!r}")
        return None
    identity_id, stored = found
    if not verify_password(password, stored):
        _logger.info(f"Login failed for {email!r}: wrong password")
        return None
    customer = await crud.get_customer_by_identity(identity_id)
    if customer is None:
        _logger.warning(f"Identity {identity_id} has no customer profile")
        return None
    return Viewer(customer)


async def update_profile(
    customer_id: int, name: str, phone: str, company: str, subscribed: bool
) -> models.Customer:
    if not name.strip():
        raise ValidationError("name", "is required")
    try:
        updated = await crud.update_customer_profile(
            customer_id, name.strip(), phone.strip(), company.strip(), subscribed
        )
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not update profile: {e}") from e
    if not updated:
        raise NotFoundError("customer", customer_id)
    return await crud.get_customer(customer_id)


async def admin_update_customer(
    customer_id: int,
    name: str,
    email: str,
    phone: str,
    company: str,
    subscribed: bool,
) -> models.Customer:
    """Back-office edit of any customer, including the email address."""
    name, email = name.strip(), email.strip().lower()
    if not name:
        raise ValidationError("name", "is required")
    if not email or "@" not in email:
        raise ValidationError("email", "is not a valid email address")
    current = await crud.get_customer(customer_id)
    if current is None:
        raise NotFoundError("customer", customer_id)
    if email != current.email.lower() and not await crud.email_available(email):
        raise ValidationError("email", "is already registered")
    try:
        await crud.admin_update_customer(
            customer_id, name, email, phone.strip(), company.strip(), subscribed
        )
    except aiosqlite.IntegrityError as e:
        raise ValidationError("email", "is already registered") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not update customer #{customer_id}: {e}") from e
    _logger.info(f"Customer #{customer_id} updated by admin")
    return await crud.get_customer(customer_id)


async def delete_customer(customer_id: int) -> None:
    """Remove a shopper account. Admin accounts cannot be deleted here."""
    customer = await crud.get_customer(customer_id)
    if customer is None:
        raise NotFoundError("customer", customer_id)
    if customer.is_admin:
        raise ValidationError("customer", "admin accounts cannot be deleted")
    try:
        await crud.delete_customer(customer_id)
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not delete customer #{customer_id}: {e}") from e
    _logger.info(f"Customer #{customer_id} <{customer.email}> deleted")


@dataclass(frozen=True)
class UnsubscribeResult:
    outcome: str  # "unsubscribed", "already_unsubscribed" or "invalid"
    email: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != "invalid"


async def redeem_unsubscribe(token: str) -> UnsubscribeResult:
    """Opt a customer out of marketing mail. Safe to repeat."""
    token = (token or "").strip()
    if not token:
        return UnsubscribeResult("invalid")
    customer = await crud.get_customer_by_token(token)
    if customer is None:
        return UnsubscribeResult("invalid")
    if not customer.subscribed:
        return UnsubscribeResult("already_unsubscribed", customer.email)
    try:
        await crud.set_subscribed_by_token(token, False)
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not unsubscribe: {e}") from e
    _logger.info(f"{customer.email} unsubscribed from marketing mail")
    return UnsubscribeResult("unsubscribed", customer.email)
