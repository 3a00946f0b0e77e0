from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from db import crud, models
from shop import accounts, checkout, quotes
from shop.cart import CartLedger, CartStore
from shop.pricing import ANONYMOUS, Viewer


@dataclass
class SessionState:
    """
    Per-session state handed to every screen.

    Fields:
      - viewer: who is shopping; ANONYMOUS until login or guest entry
      - cart: the viewer's cart, loaded from that viewer's cart file
      - role: "admin" | "customer" | "guest" | None before the login screen is passed
      - cart_dir: where cart files live (defaults to config.CART_DIR)
    """

    viewer: Viewer = ANONYMOUS
    cart: CartLedger = field(default_factory=CartLedger)
    role: Optional[Literal["admin", "customer", "guest"]] = None
    cart_dir: Optional[str] = None

    @property
    def customer(self) -> Optional[models.Customer]:
        return self.viewer.customer

    def _open_cart(self, profile: str) -> None:
        self.cart = CartLedger(self.viewer, CartStore(profile, self.cart_dir))

    async def login(self, email: str, password: str) -> bool:
        """Authenticate and load this customer's cart. False on bad credentials."""
        viewer = await accounts.authenticate(email, password)
        if viewer is None:
            return False
        self.viewer = viewer
        self.role = "admin" if viewer.is_admin else "customer"
        self._open_cart(f"customer-{viewer.customer.id}")
        return True

    def continue_as_guest(self) -> None:
        self.viewer = ANONYMOUS
        self.role = "guest"
        self._open_cart("guest")

    def logout(self) -> None:
        """Forget the viewer; the cart file stays on disk for the next login."""
        self.viewer = ANONYMOUS
        self.role = None
        self.cart = CartLedger()

    async def refresh_customer(self) -> None:
        if self.customer is None:
            return
        customer = await crud.get_customer(self.customer.id)
        if customer is not None:
            self.viewer = Viewer(customer)
            self.cart.viewer = self.viewer

    async def checkout(
        self,
        contact: checkout.ContactInfo,
        delivery: checkout.DeliverySelection,
        notes: str = "",
    ) -> models.Order:
        """Place the order; the cart is cleared only once the order is stored."""
        order = await checkout.place_order(self.cart, contact, delivery, notes)
        self.cart.clear()
        return order

    async def request_cart_quote(
        self, contact: checkout.ContactInfo, message: str = ""
    ) -> List[models.QuoteRequest]:
        created = await quotes.request_cart_quote(self.cart, contact, message)
        self.cart.clear()
        return created
