import asyncio
import tempfile
import unittest
from unittest import mock

import httpx
from fastapi.testclient import TestClient

from store_case import point_db_at

from db import crud
from services import mailer
from shop.errors import PersistenceError
from utils import config
from web.app import PIXEL, create_app


class WebTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        point_db_at(self.temp_dir.name)
        self.client = TestClient(create_app())

    def tearDown(self):
        self.client.close()
        self.temp_dir.cleanup()

    def events(self, campaign_id):
        return asyncio.run(crud.list_tracking_events(campaign_id))

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_open_pixel_records_and_never_caches(self):
        res = self.client.get("/track/open", params={"c": 2, "e": "alice@example.com"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.headers["content-type"], "image/gif")
        self.assertEqual(res.content, PIXEL)
        self.assertIn("no-store", res.headers["cache-control"])
        self.assertEqual([(e.event_type, e.customer_email) for e in self.events(2)], [("open", "alice@example.com")])

    def test_open_pixel_with_bad_parameters_still_serves_gif(self):
        for params in ({}, {"c": "abc", "e": "a@example.com"}, {"c": 2}):
            with self.subTest(params=params):
                res = self.client.get("/track/open", params=params)
                self.assertEqual(res.status_code, 200)
                self.assertEqual(res.content, PIXEL)
        self.assertEqual(self.events(2), [])

    def test_click_records_and_redirects_to_product(self):
        res = self.client.get(
            "/track/click", params={"c": 2, "e": "carol@example.com", "p": 4}, follow_redirects=False
        )
        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], f"{config.SITE_URL}/catalog/4")
        self.assertEqual([(e.event_type, e.product_id) for e in self.events(2)], [("click", 4)])

    def test_click_without_product_goes_to_catalog(self):
        res = self.client.get("/track/click", params={"c": 2, "e": "carol@example.com"}, follow_redirects=False)
        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], f"{config.SITE_URL}/catalog")
        self.assertEqual(self.events(2), [])

    def test_unsubscribe_page(self):
        res = self.client.get("/unsubscribe", params={"token": "tok-alice-0002"})
        self.assertEqual(res.status_code, 200)
        self.assertIn("You have been unsubscribed", res.text)
        self.assertIn("alice@example.com", res.text)
        self.assertFalse(asyncio.run(crud.get_customer(2)).subscribed)

        res = self.client.get("/unsubscribe", params={"token": "tok-alice-0002"})
        self.assertEqual(res.status_code, 200)
        self.assertIn("Already unsubscribed", res.text)

    def test_unsubscribe_invalid_token(self):
        self.assertEqual(self.client.get("/unsubscribe", params={"token": "bogus"}).status_code, 404)
        self.assertEqual(self.client.get("/unsubscribe").status_code, 404)

    def test_unsubscribe_storage_failure(self):
        with mock.patch("shop.accounts.redeem_unsubscribe", side_effect=PersistenceError("disk full")):
            res = self.client.get("/unsubscribe", params={"token": "tok-alice-0002"})
        self.assertEqual(res.status_code, 500)
        self.assertIn("Something went wrong", res.text)

    def test_send_campaign_endpoint(self):
        def resend(request):
            if b"carol@example.com" in request.content:
                return httpx.Response(422, text="bad address")
            return httpx.Response(200, json={"id": "msg-1"})

        def transport():
            return mailer.ResendTransport("key", transport=httpx.MockTransport(resend))

        with mock.patch("shop.campaigns.default_transport", transport):
            res = self.client.post("/api/campaigns/2/send")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual((body["campaign_id"], body["sent"], body["failed"]), (2, 1, 1))
        self.assertEqual(body["failures"][0]["recipient"], "carol@example.com")
        self.assertIn("422", body["failures"][0]["error"])
        self.assertEqual(body["message"], "Campaign sent to 1 customers")

        res = self.client.post("/api/campaigns/2/send")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "campaign is already sent")

        self.assertEqual(self.client.post("/api/campaigns/999/send").status_code, 404)

    def test_send_campaign_without_mail_key(self):
        with mock.patch.object(config, "RESEND_API_KEY", ""):
            res = self.client.post("/api/campaigns/2/send")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertFalse(body["success"])
        self.assertEqual((body["sent"], body["failed"], body["message"]), (0, 2, None))
        self.assertEqual(
            {f["error"] for f in body["failures"]}, {"mail transport not configured"}
        )
        self.assertEqual(asyncio.run(crud.get_campaign(2)).status, "draft")


if __name__ == "__main__":
    unittest.main()
