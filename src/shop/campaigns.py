"""
Marketing campaigns: drafting, per-recipient HTML rendering with tracking
links, and a bounded-concurrency send that accounts for every recipient.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import List, Optional, Sequence
from urllib.parse import urlencode

import aiosqlite

from db import crud, models
from services.mailer import MailTransport, SendResult, default_transport
from shop.errors import NotFoundError, PersistenceError, ValidationError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

SENDABLE_STATUSES = ("draft", "scheduled")


@dataclass
class SendReport:
    campaign_id: int
    results: List[SendResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def failures(self) -> List[SendResult]:
        return [r for r in self.results if not r.ok]


# ---------------------------
# Tracking links
# ---------------------------


def open_pixel_url(campaign_id: int, email: str) -> str:
    return f"{config.SITE_URL}/track/open?" + urlencode({"c": campaign_id, "e": email})


def click_url(campaign_id: int, email: str, product_id: int) -> str:
    return f"{config.SITE_URL}/track/click?" + urlencode(
        {"c": campaign_id, "e": email, "p": product_id}
    )


def unsubscribe_url(token: str) -> str:
    return f"{config.SITE_URL}/unsubscribe?" + urlencode({"token": token})


# ---------------------------
# Rendering
# ---------------------------

_PRODUCT_CARD = """
<a href="{href}" style="text-decoration: none; color: inherit;">
  <div style="border: 1px solid #ddd; border-radius: 8px; padding: 16px; margin-bottom: 16px;">
    {image}
    <h3 style="margin: 0 0 8px 0; font-size: 18px; color: #333;">{name}</h3>
    {description}
    <p style="font-size: 20px; font-weight: bold; color: #000; margin: 0;">Starting from ${price}</p>
  </div>
</a>"""

_EMAIL = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff;">
    <div style="background-color: #000000; color: #ffffff; padding: 32px; text-align: center;">
      <h1 style="margin: 0; font-size: 28px;">{store}</h1>
      {headline}
    </div>
    <div style="padding: 24px;">{cards}
    </div>
    <div style="background-color: #f5f5f5; padding: 24px; text-align: center; color: #666; font-size: 12px;">
      <p style="margin: 0 0 8px 0;">{store} - Quality Trucking Parts</p>
      <p style="margin: 0 0 8px 0;">{contact}</p>
      <p style="margin: 0;">You received this email because you subscribed to our mailing list.
        <a href="{unsubscribe}" style="color: #666;">Unsubscribe</a></p>
    </div>
  </div>
  <img src="{pixel}" width="1" height="1" alt="" style="display: block;">
</body>
</html>
"""


def render_campaign_email(
    campaign: models.Campaign,
    products: Sequence[models.Product],
    recipient: models.Customer,
) -> str:
    """HTML body for one recipient. Every interpolated value is escaped."""
    cards = []
    for p in products:
        image = ""
        if p.images:
            image = (
                f'<img src="{escape(p.images[0])}" alt="{escape(p.name)}" '
                'style="width: 100%; height: 200px; object-fit: cover; '
                'border-radius: 8px; margin-bottom: 12px;">'
            )
        description = ""
        if p.description:
            description = (
                '<p style="color: #666; font-size: 14px; margin: 0 0 8px 0;">'
                f"{escape(p.description)}</p>"
            )
        cards.append(
            _PRODUCT_CARD.format(
                href=escape(click_url(campaign.id, recipient.email, p.id)),
                image=image,
                name=escape(p.name),
                description=description,
                price=f"{p.retail_price:,.2f}",
            )
        )
    headline = ""
    if campaign.headline:
        headline = f'<p style="margin: 8px 0 0 0; font-size: 16px;">{escape(campaign.headline)}</p>'
    return _EMAIL.format(
        store=escape(config.STORE_NAME),
        headline=headline,
        cards="".join(cards),
        contact=escape(config.STORE_CONTACT),
        unsubscribe=escape(unsubscribe_url(recipient.unsubscribe_token)),
        pixel=escape(open_pixel_url(campaign.id, recipient.email)),
    )


# ---------------------------
# Operations
# ---------------------------


async def create_campaign(
    name: str,
    subject: str,
    headline: str,
    product_ids: Sequence[int],
    when: Optional[datetime] = None,
) -> models.Campaign:
    if not name.strip():
        raise ValidationError("name", "is required")
    if not subject.strip():
        raise ValidationError("subject", "is required")
    ids = list(dict.fromkeys(product_ids))
    known = await crud.get_products(ids)
    missing = [pid for pid in ids if pid not in known]
    if missing:
        raise ValidationError("products", f"unknown product id(s): {missing}")
    try:
        campaign_id = await crud.create_campaign(
            name.strip(), subject.strip(), headline.strip(), ids, when or datetime.now()
        )
    except aiosqlite.Error as e:
        raise PersistenceError(f"Could not save campaign: {e}") from e
    _logger.info(f"Campaign #{campaign_id} {name!r} drafted with {len(ids)} product(s)")
    return await crud.get_campaign(campaign_id)


async def send_campaign(
    campaign_id: int,
    transport: Optional[MailTransport] = None,
    when: Optional[datetime] = None,
    concurrency: Optional[int] = None,
) -> SendReport:
    """
    Mail the campaign to every subscribed customer.

    At most ``concurrency`` sends are in flight. Each recipient's outcome is
    recorded in the report. The campaign is marked sent when at least one
    delivery succeeded; ``recipients`` is the number of successful deliveries.
    """
    campaign = await crud.get_campaign(campaign_id)
    if campaign is None:
        raise NotFoundError("campaign", campaign_id)
    if campaign.status not in SENDABLE_STATUSES:
        raise ValidationError("status", f"campaign is already {campaign.status}")
    products = await crud.get_campaign_products(campaign_id)
    if not products:
        raise ValidationError("products", "campaign has no products")
    customers = await crud.list_subscribed_customers()
    if not customers:
        raise ValidationError("recipients", "no subscribed customers found")

    owns_transport = transport is None
    transport = transport or default_transport()
    semaphore = asyncio.Semaphore(concurrency or config.MAIL_SEND_CONCURRENCY)

    async def deliver(customer: models.Customer) -> SendResult:
        html = render_campaign_email(campaign, products, customer)
        async with semaphore:
            try:
                return await transport.send(customer.email, campaign.subject, html)
            except Exception as e:
                _logger.exception(f"Transport error for {customer.email}")
                return SendResult(customer.email, False, error=str(e) or type(e).__name__)

    try:
        results = await asyncio.gather(*(deliver(c) for c in customers))
    finally:
        if owns_transport:
            await transport.aclose()

    report = SendReport(campaign_id, list(results))
    if report.sent == 0:
        _logger.error(f"Campaign #{campaign_id}: all {report.failed} send(s) failed")
        return report

    try:
        await crud.mark_campaign_sent(campaign_id, report.sent, when or datetime.now())
    except aiosqlite.Error as e:
        raise PersistenceError(f"Campaign mailed but status not saved: {e}") from e
    _logger.info(f"Campaign #{campaign_id} sent: {report.sent} ok, {report.failed} failed")
    return report
