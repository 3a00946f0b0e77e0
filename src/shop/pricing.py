from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from db.models import Customer, Product

CUSTOMER_DISCOUNT = 0.05


@dataclass(frozen=True)
class Viewer:
    """Who is looking at the catalog. ``customer`` is None for anonymous shoppers."""

    customer: Optional[Customer] = None

    @property
    def is_authenticated(self) -> bool:
        return self.customer is not None

    @property
    def is_admin(self) -> bool:
        return self.customer is not None and self.customer.is_admin

    @property
    def email(self) -> Optional[str]:
        return self.customer.email if self.customer else None


ANONYMOUS = Viewer()


def price_for(product: Product, viewer: Viewer) -> float:
    """Unit price shown to ``viewer``: customer price when signed in, retail otherwise."""
    if viewer.is_authenticated:
        return product.customer_price
    return product.retail_price


def customer_price_for(retail_price: float) -> float:
    """Default customer price for a newly entered retail price."""
    return round(retail_price * (1 - CUSTOMER_DISCOUNT), 2)
