from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

from db import crud, models

TOP_PRODUCTS = 5


@dataclass(frozen=True)
class ProductClicks:
    product_id: int
    name: str
    clicks: int
    share: float  # percent of all clicks in the campaign


@dataclass(frozen=True)
class CampaignAnalytics:
    campaign: Optional[models.Campaign] = None
    recipients: int = 0
    total_opens: int = 0
    total_clicks: int = 0
    unique_opens: int = 0
    unique_clicks: int = 0
    open_rate: float = 0.0
    click_rate: float = 0.0
    click_through_rate: float = 0.0
    top_products: List[ProductClicks] = field(default_factory=list)


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


def aggregate_events(
    events: Iterable[models.TrackingEvent],
    recipients: int,
    product_names: Optional[Dict[int, str]] = None,
) -> CampaignAnalytics:
    """
    Fold raw tracking rows into campaign metrics.

    Unique counts are distinct emails. A click without a matching open still
    counts as a unique click, so click_through_rate may exceed 100.
    """
    product_names = product_names or {}
    opens = []
    clicks = []
    for e in events:
        if e.event_type == "open":
            opens.append(e)
        elif e.event_type == "click":
            clicks.append(e)

    # emails compare case-insensitively, as in the customers table
    unique_opens = len({e.customer_email.lower() for e in opens})
    unique_clicks = len({e.customer_email.lower() for e in clicks})

    per_product = Counter(e.product_id for e in clicks if e.product_id is not None)
    ranked = sorted(per_product.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_PRODUCTS]
    top = [
        ProductClicks(
            product_id=pid,
            name=product_names.get(pid, "Unknown"),
            clicks=count,
            share=_rate(count, len(clicks)),
        )
        for pid, count in ranked
    ]

    return CampaignAnalytics(
        recipients=recipients,
        total_opens=len(opens),
        total_clicks=len(clicks),
        unique_opens=unique_opens,
        unique_clicks=unique_clicks,
        open_rate=_rate(unique_opens, recipients),
        click_rate=_rate(unique_clicks, recipients),
        click_through_rate=_rate(unique_clicks, unique_opens),
        top_products=top,
    )


async def campaign_analytics(campaign_id: int) -> CampaignAnalytics:
    """Analytics for a stored campaign; an unknown id yields an all-zero result."""
    campaign = await crud.get_campaign(campaign_id)
    if campaign is None:
        return CampaignAnalytics()
    events = await crud.list_tracking_events(campaign_id)
    clicked = {e.product_id for e in events if e.product_id is not None}
    products = await crud.get_products(clicked)
    result = aggregate_events(
        events, campaign.recipients, {pid: p.name for pid, p in products.items()}
    )
    return replace(result, campaign=campaign)
