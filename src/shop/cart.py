from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from typing import Iterator, List, Optional

from db.models import Product
from shop.errors import ValidationError
from shop.pricing import ANONYMOUS, Viewer, price_for
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class CartLine:
    product_id: int
    name: str
    code: str  # sku for parts, vin for trucks
    unit_price: float  # snapshotted when the product entered the cart
    retail_price: float
    customer_price: float
    quantity: int
    image: Optional[str] = None

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            product_id=int(data["product_id"]),
            name=str(data["name"]),
            code=str(data["code"]),
            unit_price=float(data["unit_price"]),
            retail_price=float(data["retail_price"]),
            customer_price=float(data["customer_price"]),
            quantity=int(data["quantity"]),
            image=data.get("image"),
        )


class CartStore:
    """
    Keeps one cart per profile as a JSON file under ``config.CART_DIR``.

    A missing file is an empty cart. A file that cannot be parsed is logged
    and treated as empty.
    """

    def __init__(self, profile: str, directory: Optional[str] = None):
        self.profile = profile
        self.directory = directory or config.CART_DIR

    @property
    def path(self) -> str:
        return os.path.join(self.directory, f"cart-{self.profile}.json")

    def load(self) -> List[CartLine]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return [CartLine.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            _logger.warning(f"Ignoring unreadable cart file {self.path}: {e}")
            return []

    def save(self, lines: List[CartLine]) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([asdict(line) for line in lines], f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class CartLedger:
    """
    The shopper's cart: one line per product id.

    Every mutation is written through to the store (when one is given) so the
    cart survives restarts of the same profile.
    """

    def __init__(self, viewer: Viewer = ANONYMOUS, store: Optional[CartStore] = None):
        self.viewer = viewer
        self.store = store
        self._lines: List[CartLine] = store.load() if store else []

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: int) -> Optional[CartLine]:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def add(self, product: Product, quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise ValidationError("quantity", "must be at least 1")
        line = self.get(product.id)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                code=product.code,
                unit_price=price_for(product, self.viewer),
                retail_price=product.retail_price,
                customer_price=product.customer_price,
                quantity=quantity,
                image=product.images[0] if product.images else None,
            )
            self._lines.append(line)
        self._persist()
        return line

    def update_quantity(self, product_id: int, new_quantity: int) -> None:
        if new_quantity <= 0:
            self.remove(product_id)
            return
        line = self.get(product_id)
        if line is None:
            return
        line.quantity = new_quantity
        self._persist()

    def remove(self, product_id: int) -> None:
        before = len(self._lines)
        self._lines = [l for l in self._lines if l.product_id != product_id]
        if len(self._lines) != before:
            self._persist()

    def clear(self) -> None:
        self._lines = []
        self._persist()

    def subtotal(self) -> float:
        return round(sum(l.unit_price * l.quantity for l in self._lines), 2)

    def savings(self) -> float:
        if not self.viewer.is_authenticated:
            return 0.0
        total = 0.0
        for l in self._lines:
            diff = l.retail_price - l.customer_price
            if diff > 0:
                total += diff * l.quantity
        return round(total, 2)

    def item_count(self) -> int:
        return sum(l.quantity for l in self._lines)

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self._lines)
