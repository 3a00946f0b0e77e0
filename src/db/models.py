# provide dataclass models, one per table row

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

STOCK_STATUSES = ("in_stock", "low_stock", "out_of_stock")
PRODUCT_KINDS = ("part", "truck")
DELIVERY_METHODS = ("pickup", "delivery", "shipping")
ORDER_STATUSES = ("pending", "paid", "processing", "ready", "completed", "cancelled")
QUOTE_STATUSES = ("new", "contacted", "quoted", "closed")
CAMPAIGN_STATUSES = ("draft", "scheduled", "sent")
TRACKING_EVENTS = ("open", "click")


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: str = ""


@dataclass(frozen=True)
class Product:
    id: int
    kind: str  # "part" or "truck"
    name: str
    description: str
    sku: Optional[str]
    vin: Optional[str]
    category_id: Optional[int]
    retail_price: float
    customer_price: float
    stock_status: str
    images: Tuple[str, ...] = ()
    attributes: Dict[str, str] = field(default_factory=dict, compare=False)
    created_at: Optional[datetime] = None

    @property
    def code(self) -> str:
        """sku for parts, vin for trucks"""
        return self.sku or self.vin or f"TRUCK-{self.id}"


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    email: str
    company: str
    phone: str
    subscribed: bool
    unsubscribe_token: str
    identity_id: Optional[str]
    is_admin: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Order:
    id: int
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_company: str
    delivery_method: str
    delivery_address: str
    delivery_city: str
    delivery_province: str
    delivery_postal_code: str
    subtotal: float
    tax: float
    shipping: float
    total: float
    status: str
    notes: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class OrderItem:
    id: int
    order_id: int
    product_id: Optional[int]
    product_name: str
    product_sku: str
    quantity: int
    price: float  # unit price at time of order
    subtotal: float


@dataclass(frozen=True)
class QuoteRequest:
    id: int
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_company: str
    product_id: Optional[int]
    quantity: int
    message: str
    status: str
    created_at: datetime
    product_name: Optional[str] = None


@dataclass(frozen=True)
class Campaign:
    id: int
    name: str
    subject: str
    headline: str
    status: str
    recipients: int
    sent_at: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class TrackingEvent:
    id: int
    campaign_id: int
    customer_email: str
    event_type: str  # "open" or "click"
    product_id: Optional[int]
    created_at: datetime
