import json
import unittest
from datetime import datetime
from unittest import mock
from urllib.parse import parse_qs

import httpx

from store_case import src_path  # noqa: F401  (puts src/ on sys.path)

from db.models import Order, OrderItem, QuoteRequest
from services import mailer, sms, vin
from shop.errors import ValidationError
from utils import config

VPIC_RESULT = {
    "Make": "FREIGHTLINER",
    "Model": "Cascadia",
    "ModelYear": "2018",
    "EngineModel": "DD15",
    "DisplacementL": "14.8",
    "FuelTypePrimary": "Diesel",
    "TransmissionStyle": "Automated Manual Transmission (AMT)",
    "GVWR": "52,000 lb",
    "BodyClass": "Truck-Tractor",
}


def vpic_transport(payload=None, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else {"Results": [VPIC_RESULT]})

    return httpx.MockTransport(handler)


class VinTestCase(unittest.IsolatedAsyncioTestCase):
    def test_normalize_vin(self):
        self.assertEqual(vin.normalize_vin(" 3akjgldr5jsjx1234 "), "3AKJGLDR5JSJX1234")
        for bad in ("", "3AKJGLDR5JSJX123", "3AKJGLDR5JSJX12345", "3AKJGLDR5JSJX123I"):
            with self.subTest(vin=bad):
                with self.assertRaises(ValidationError):
                    vin.normalize_vin(bad)

    def test_parse_decode_result(self):
        info = vin.parse_decode_result(VPIC_RESULT)
        self.assertEqual(info.engine, "DD15 14.8L Diesel")
        self.assertEqual(info.gvw, "52000")
        self.assertEqual(info.as_attributes()["make"], "FREIGHTLINER")
        self.assertIsNone(vin.parse_decode_result({"Make": ""}))
        self.assertIsNone(vin.parse_decode_result({"Make": "Not Applicable"}))

        partial = vin.parse_decode_result({"Make": "MACK", "EngineModel": "Not Applicable"})
        self.assertEqual(partial.as_attributes(), {"make": "MACK"})

    async def test_decode_vin(self):
        seen = []
        info = await vin.decode_vin("3akjgldr5jsjx1234", transport=vpic_transport(seen=seen))
        self.assertEqual((info.make, info.model, info.year), ("FREIGHTLINER", "Cascadia", "2018"))
        self.assertTrue(str(seen[0].url).startswith(f"{config.VIN_DECODER_URL}/3AKJGLDR5JSJX1234"))
        self.assertEqual(seen[0].url.params["format"], "json")

    async def test_decode_vin_failures_return_none(self):
        self.assertIsNone(await vin.decode_vin("3AKJGLDR5JSJX1234", transport=vpic_transport(status_code=503)))
        self.assertIsNone(await vin.decode_vin("3AKJGLDR5JSJX1234", transport=vpic_transport({"Results": []})))
        self.assertIsNone(
            await vin.decode_vin("3AKJGLDR5JSJX1234", transport=vpic_transport({"Results": [{"Make": ""}]}))
        )

        def boom(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        self.assertIsNone(await vin.decode_vin("3AKJGLDR5JSJX1234", transport=httpx.MockTransport(boom)))

        with self.assertRaises(ValidationError):
            await vin.decode_vin("123", transport=vpic_transport())


class MailerTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_resend_transport_posts_one_message(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "re_123"})

        transport = mailer.ResendTransport(
            "key-1", sender="shop@example.com", url="https://mail.test/emails",
            transport=httpx.MockTransport(handler),
        )
        result = await transport.send("alice@example.com", "Hi", "<p>hello</p>")
        await transport.aclose()

        self.assertEqual(result, mailer.SendResult("alice@example.com", True, message_id="re_123"))
        self.assertEqual(seen[0].headers["Authorization"], "Bearer key-1")
        self.assertEqual(
            json.loads(seen[0].content),
            {"from": "shop@example.com", "to": ["alice@example.com"], "subject": "Hi", "html": "<p>hello</p>"},
        )

    async def test_resend_transport_failures(self):
        rejected = mailer.ResendTransport(
            "k", transport=httpx.MockTransport(lambda r: httpx.Response(422, text="bad address"))
        )
        result = await rejected.send("x@example.com", "s", "h")
        self.assertFalse(result.ok)
        self.assertIn("422", result.error)
        await rejected.aclose()

        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        unreachable = mailer.ResendTransport("k", transport=httpx.MockTransport(boom))
        result = await unreachable.send("x@example.com", "s", "h")
        self.assertEqual((result.ok, result.error), (False, "refused"))
        await unreachable.aclose()

    async def test_default_transport_without_key_fails_every_send(self):
        with mock.patch.object(config, "RESEND_API_KEY", ""):
            transport = mailer.default_transport()
        self.assertIsInstance(transport, mailer.UnconfiguredTransport)
        result = await transport.send("a@example.com", "s", "<p/>")
        self.assertEqual((result.ok, result.error), (False, "mail transport not configured"))

    def test_transport_base_is_abstract(self):
        with self.assertRaises(TypeError):
            mailer.MailTransport()


_ORDER = Order(
    1, "Dan Wright", "dan@example.com", "519-555-0199", "", "shipping", "12 King St W", "Kitchener",
    "ON", "N2G 1A1", 240.0, 31.2, 50.0, 321.2, "pending", "", datetime(2025, 9, 25), datetime(2025, 9, 25),
)
_ITEMS = [OrderItem(1, 1, 4, "Delco 12V Alternator 160A", "ALT-160", 1, 240.0, 240.0)]

_TWILIO = {
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "secret",
    "TWILIO_FROM_NUMBER": "+15550000000",
    "OWNER_PHONE_NUMBER": "+16479938235",
}


class SmsTestCase(unittest.IsolatedAsyncioTestCase):
    def test_order_text(self):
        text = sms.order_notification_text(_ORDER, _ITEMS)
        self.assertTrue(text.startswith("NEW ORDER #1"))
        self.assertIn("- Delco 12V Alternator 160A (x1) $240.00", text)
        self.assertIn("Shipping: $50.00", text)
        self.assertIn("TOTAL: $321.20", text)
        self.assertIn("Address: 12 King St W, Kitchener ON N2G 1A1", text)

    def test_quote_text(self):
        q = QuoteRequest(5, "Bob", "bob@example.com", "", "", None, 1, "PART REQUEST", "new", datetime.now())
        text = sms.quote_notification_text([q])
        self.assertIn("Phone: Not provided", text)
        self.assertIn("Part: Not in inventory", text)

    async def test_disabled_without_credentials(self):
        with mock.patch.multiple(config, TWILIO_ACCOUNT_SID="", TWILIO_AUTH_TOKEN=""):
            self.assertFalse(sms.sms_enabled())
            self.assertFalse(await sms.send_sms("hello"))

    async def test_send_sms_posts_form(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"sid": "SM1"})

        with mock.patch.multiple(config, **_TWILIO):
            self.assertTrue(await sms.send_sms("hello", transport=httpx.MockTransport(handler)))

        request = seen[0]
        self.assertEqual(str(request.url), "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json")
        form = parse_qs(request.content.decode())
        self.assertEqual(form, {"To": ["+16479938235"], "From": ["+15550000000"], "Body": ["hello"]})
        self.assertTrue(request.headers["Authorization"].startswith("Basic "))

    async def test_send_sms_failure_is_swallowed(self):
        with mock.patch.multiple(config, **_TWILIO):
            ok = await sms.send_sms("hello", transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        self.assertFalse(ok)


if __name__ == "__main__":
    unittest.main()
