import asyncio
import unittest
from datetime import datetime
from unittest import mock

from store_case import StoreTestCase

from db import crud
from services.mailer import MailTransport, SendResult
from shop import campaigns
from shop.errors import NotFoundError, ValidationError
from utils import config


class FakeTransport(MailTransport):
    """Records every message; recipients listed in ``fail`` are rejected."""

    def __init__(self, fail=(), explode=()):
        self.fail = set(fail)
        self.explode = set(explode)
        self.sent = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, recipient, subject, html):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if recipient in self.explode:
                raise RuntimeError("connection reset")
            self.sent.append((recipient, subject, html))
            if recipient in self.fail:
                return SendResult(recipient, False, error="HTTP 422: invalid recipient")
            return SendResult(recipient, True, message_id=f"msg-{recipient}")
        finally:
            self.in_flight -= 1

    async def aclose(self):
        self.closed = True


class RenderTestCase(StoreTestCase):
    async def test_email_carries_tracking_links_and_escapes_content(self):
        campaign = await crud.get_campaign(2)
        products = await crud.get_campaign_products(2)
        alice = await crud.get_customer(2)

        html = campaigns.render_campaign_email(campaign, products, alice)
        self.assertIn("track/open?c=2&amp;e=alice%40example.com", html)
        self.assertIn("track/click?c=2&amp;e=alice%40example.com&amp;p=1", html)
        self.assertIn("unsubscribe?token=tok-alice-0002", html)
        self.assertIn("Starting from $420.00", html)
        self.assertLess(html.index("Detroit DD15 Water Pump"), html.index("Delco 12V Alternator 160A"))

    async def test_product_text_is_escaped(self):
        pid = await crud.create_product("part", "<b>Bolt</b> & Nut", "", 1.0, 0.95, sku="BN-1")
        cid = await crud.create_campaign("x", "y", "", [pid], datetime.now())
        html = campaigns.render_campaign_email(
            await crud.get_campaign(cid), await crud.get_campaign_products(cid), await crud.get_customer(2)
        )
        self.assertIn("&lt;b&gt;Bolt&lt;/b&gt; &amp; Nut", html)
        self.assertNotIn("<b>Bolt</b>", html)


class CreateCampaignTestCase(StoreTestCase):
    async def test_create_campaign(self):
        c = await campaigns.create_campaign(" Spring ", "Tune-up time", "Parts that last", [4, 1, 4])
        self.assertEqual((c.name, c.status, c.recipients), ("Spring", "draft", 0))
        self.assertEqual([p.id for p in await crud.get_campaign_products(c.id)], [4, 1])

    async def test_create_campaign_validation(self):
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.create_campaign("", "s", "", [1])
        self.assertEqual(ctx.exception.field, "name")
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.create_campaign("n", " ", "", [1])
        self.assertEqual(ctx.exception.field, "subject")
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.create_campaign("n", "s", "", [1, 999])
        self.assertEqual(ctx.exception.field, "products")


class SendCampaignTestCase(StoreTestCase):
    async def test_send_to_every_subscriber(self):
        transport = FakeTransport()
        when = datetime(2025, 10, 6, 8, 0)
        report = await campaigns.send_campaign(2, transport=transport, when=when)

        self.assertEqual((report.sent, report.failed), (2, 0))
        self.assertEqual(sorted(r for r, _, _ in transport.sent), ["alice@example.com", "carol@example.com"])
        self.assertTrue(all(subject == "Keep your engine cool" for _, subject, _ in transport.sent))
        # a transport handed in by the caller stays open
        self.assertFalse(transport.closed)

        campaign = await crud.get_campaign(2)
        self.assertEqual((campaign.status, campaign.recipients, campaign.sent_at), ("sent", 2, when))

    async def test_partial_failure_is_reported_per_recipient(self):
        transport = FakeTransport(fail={"carol@example.com"})
        report = await campaigns.send_campaign(2, transport=transport)

        self.assertEqual((report.sent, report.failed), (1, 1))
        self.assertEqual([f.recipient for f in report.failures], ["carol@example.com"])
        self.assertEqual(report.failures[0].error, "HTTP 422: invalid recipient")
        self.assertEqual((await crud.get_campaign(2)).recipients, 1)

    async def test_transport_exception_counts_as_failure(self):
        transport = FakeTransport(explode={"alice@example.com"})
        report = await campaigns.send_campaign(2, transport=transport)
        self.assertEqual((report.sent, report.failed), (1, 1))
        self.assertEqual(report.failures[0].error, "connection reset")

    async def test_all_failed_leaves_campaign_unsent(self):
        transport = FakeTransport(fail={"alice@example.com", "carol@example.com"})
        report = await campaigns.send_campaign(2, transport=transport)
        self.assertEqual((report.sent, report.failed), (0, 2))
        campaign = await crud.get_campaign(2)
        self.assertEqual((campaign.status, campaign.recipients), ("draft", 0))

        # a later attempt is still possible
        report = await campaigns.send_campaign(2, transport=FakeTransport())
        self.assertEqual(report.sent, 2)

    async def test_send_without_mail_key_keeps_draft(self):
        with mock.patch.object(config, "RESEND_API_KEY", ""):
            report = await campaigns.send_campaign(2)
        self.assertEqual((report.sent, report.failed), (0, 2))
        self.assertEqual(
            {f.error for f in report.failures}, {"mail transport not configured"}
        )
        campaign = await crud.get_campaign(2)
        self.assertEqual((campaign.status, campaign.recipients), ("draft", 0))

    async def test_concurrency_is_bounded(self):
        for i in range(6):
            await crud.register_customer(f"idn-{i}", "h", f"N{i}", f"n{i}@example.com", "", "", f"tok-{i}")
        transport = FakeTransport()
        report = await campaigns.send_campaign(2, transport=transport, concurrency=2)
        self.assertEqual(report.sent, 8)
        self.assertLessEqual(transport.max_in_flight, 2)

    async def test_send_preconditions(self):
        with self.assertRaises(NotFoundError):
            await campaigns.send_campaign(999, transport=FakeTransport())
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.send_campaign(1, transport=FakeTransport())
        self.assertEqual(ctx.exception.field, "status")

        empty = await campaigns.create_campaign("Empty", "Nothing here", "", [])
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.send_campaign(empty.id, transport=FakeTransport())
        self.assertEqual(ctx.exception.field, "products")

        await crud.set_subscribed_by_token("tok-alice-0002", False)
        await crud.set_subscribed_by_token("tok-carol-0004", False)
        transport = FakeTransport()
        with self.assertRaises(ValidationError) as ctx:
            await campaigns.send_campaign(2, transport=transport)
        self.assertEqual(ctx.exception.field, "recipients")
        self.assertEqual(transport.sent, [])


if __name__ == "__main__":
    unittest.main()
