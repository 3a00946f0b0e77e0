import unittest
from datetime import datetime

from store_case import StoreTestCase

from db.models import TrackingEvent
from shop.analytics import aggregate_events, campaign_analytics

_WHEN = datetime(2025, 10, 1)


def opens(n, start=0):
    return [TrackingEvent(i, 9, f"user{i}@example.com", "open", None, _WHEN) for i in range(start, start + n)]


def clicks(n, product_id, start=0):
    return [
        TrackingEvent(1000 + i, 9, f"user{i}@example.com", "click", product_id, _WHEN)
        for i in range(start, start + n)
    ]


class AggregateTestCase(unittest.TestCase):
    def test_rates(self):
        stats = aggregate_events(opens(40) + clicks(10, 1), recipients=100)
        self.assertEqual((stats.unique_opens, stats.unique_clicks), (40, 10))
        self.assertEqual((stats.open_rate, stats.click_rate, stats.click_through_rate), (40.0, 10.0, 25.0))

    def test_zero_recipients_gives_zero_rates(self):
        stats = aggregate_events(opens(3), recipients=0)
        self.assertEqual((stats.open_rate, stats.click_rate, stats.click_through_rate), (0.0, 0.0, 0.0))
        stats = aggregate_events([], recipients=10)
        self.assertEqual((stats.total_opens, stats.total_clicks, stats.top_products), (0, 0, []))

    def test_unique_counts_ignore_repeats_and_case(self):
        events = opens(2) + [TrackingEvent(50, 9, "USER0@example.com", "open", None, _WHEN)]
        stats = aggregate_events(events, recipients=4)
        self.assertEqual((stats.total_opens, stats.unique_opens, stats.open_rate), (3, 2, 50.0))

    def test_click_without_open_can_push_ctr_over_100(self):
        stats = aggregate_events(opens(1) + clicks(2, 1), recipients=2)
        self.assertEqual(stats.click_through_rate, 200.0)

    def test_top_products_ranking_and_share(self):
        events = clicks(8, product_id=11) + clicks(5, product_id=12)
        stats = aggregate_events(events, recipients=20, product_names={11: "A"})
        self.assertEqual([(p.product_id, p.name, p.clicks) for p in stats.top_products], [(11, "A", 8), (12, "Unknown", 5)])
        self.assertEqual([p.share for p in stats.top_products], [61.5, 38.5])

    def test_top_products_are_capped_and_ties_break_on_id(self):
        events = []
        for pid in (7, 3, 5, 1, 9, 2):
            events += clicks(2, pid)
        events += clicks(1, 4)
        stats = aggregate_events(events, recipients=20)
        self.assertEqual([p.product_id for p in stats.top_products], [1, 2, 3, 5, 7])


class CampaignAnalyticsTestCase(StoreTestCase):
    async def test_seeded_campaign(self):
        stats = await campaign_analytics(1)
        self.assertEqual(stats.campaign.name, "Fall Brake Sale")
        self.assertEqual(stats.recipients, 2)
        self.assertEqual((stats.total_opens, stats.unique_opens), (3, 2))
        self.assertEqual((stats.total_clicks, stats.unique_clicks), (3, 2))
        self.assertEqual((stats.open_rate, stats.click_rate, stats.click_through_rate), (100.0, 100.0, 100.0))
        self.assertEqual(
            [(p.name, p.clicks, p.share) for p in stats.top_products],
            [("Air Brake Chamber 30/30", 2, 66.7), ("LED Headlight Assembly", 1, 33.3)],
        )

    async def test_unsent_and_unknown_campaigns(self):
        stats = await campaign_analytics(2)
        self.assertEqual((stats.recipients, stats.open_rate, stats.top_products), (0, 0.0, []))
        missing = await campaign_analytics(999)
        self.assertIsNone(missing.campaign)
        self.assertEqual(missing.total_opens, 0)


if __name__ == "__main__":
    unittest.main()
