import unittest
from datetime import datetime
from unittest import mock

import aiosqlite

from store_case import StoreTestCase

from db import crud
from shop import checkout
from shop.cart import CartLedger
from shop.checkout import ContactInfo, DeliverySelection, compute_totals
from shop.errors import PersistenceError, ValidationError
from shop.pricing import Viewer

CONTACT = ContactInfo(name="Dan Wright", email="dan@example.com", phone="519-555-0199")
SHIP_TO = DeliverySelection(
    method="shipping", address="12 King St W", city="Kitchener", province="on", postal_code="n2g 1a1"
)


class TotalsTestCase(unittest.TestCase):
    def test_pickup_has_tax_only(self):
        totals = compute_totals(200.0, "pickup")
        self.assertEqual((totals.subtotal, totals.tax, totals.shipping, totals.total), (200.0, 26.0, 0.0, 226.0))

    def test_shipping_adds_flat_surcharge(self):
        totals = compute_totals(95.0, "shipping")
        self.assertEqual((totals.tax, totals.shipping, totals.total), (12.35, 50.0, 157.35))

    def test_local_delivery_is_free(self):
        self.assertEqual(compute_totals(10.0, "delivery").shipping, 0.0)

    def test_contact_validation(self):
        with self.assertRaises(ValidationError) as ctx:
            checkout.validate_contact(ContactInfo("", "a@b.c", "1"))
        self.assertEqual(ctx.exception.field, "name")
        with self.assertRaises(ValidationError) as ctx:
            checkout.validate_contact(ContactInfo("A", "not-an-email", "1"))
        self.assertEqual(ctx.exception.field, "email")
        with self.assertRaises(ValidationError) as ctx:
            checkout.validate_contact(ContactInfo("A", "a@b.c", " "))
        self.assertEqual(ctx.exception.field, "phone")

    def test_delivery_validation(self):
        checkout.validate_delivery(DeliverySelection("pickup"))
        checkout.validate_delivery(SHIP_TO)
        cases = [
            (DeliverySelection("drone"), "delivery_method"),
            (DeliverySelection("delivery", "", "Toronto", "ON", "M5V 2T6"), "address"),
            (DeliverySelection("delivery", "1 Main", "", "ON", "M5V 2T6"), "city"),
            (DeliverySelection("delivery", "1 Main", "Toronto", "NY", "M5V 2T6"), "province"),
            (DeliverySelection("delivery", "1 Main", "Toronto", "ON", "90210"), "postal_code"),
        ]
        for delivery, field in cases:
            with self.subTest(field=field):
                with self.assertRaises(ValidationError) as ctx:
                    checkout.validate_delivery(delivery)
                self.assertEqual(ctx.exception.field, field)


class PlaceOrderTestCase(StoreTestCase):
    async def test_anonymous_pickup_order(self):
        cart = CartLedger()
        cart.add(await crud.get_product(5), 2)  # out of stock items may still be ordered
        order = await checkout.place_order(cart, CONTACT, DeliverySelection(), notify=False)

        self.assertEqual((order.subtotal, order.tax, order.shipping, order.total), (200.0, 26.0, 0.0, 226.0))
        self.assertEqual(order.status, "pending")
        self.assertEqual(order.delivery_address, "")
        _, items = await crud.get_order_detail(order.id)
        self.assertEqual([(i.product_id, i.quantity, i.price, i.subtotal) for i in items], [(5, 2, 100.0, 200.0)])
        # placing an order does not empty the cart by itself
        self.assertEqual(len(cart), 1)

    async def test_signed_in_shipping_order_uses_customer_price(self):
        alice = await crud.get_customer(2)
        cart = CartLedger(Viewer(alice))
        cart.add(await crud.get_product(5), 1)
        self.assertEqual(cart.savings(), 5.0)

        order = await checkout.place_order(
            cart, CONTACT, SHIP_TO, notes=" leave at dock ", when=datetime(2025, 10, 10, 9, 0), notify=False
        )
        self.assertEqual((order.subtotal, order.tax, order.shipping, order.total), (95.0, 12.35, 50.0, 157.35))
        self.assertEqual((order.delivery_province, order.delivery_postal_code), ("ON", "N2G 1A1"))
        self.assertEqual(order.notes, "leave at dock")
        self.assertEqual(order.created_at, datetime(2025, 10, 10, 9, 0))

    async def test_empty_cart_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            await checkout.place_order(CartLedger(), CONTACT, DeliverySelection(), notify=False)
        self.assertEqual(ctx.exception.field, "cart")

    async def test_failed_write_keeps_nothing_and_reports_persistence_error(self):
        cart = CartLedger()
        cart.add(await crud.get_product(2), 1)
        cart.add(await crud.get_product(6), 1)
        cart.get(6).quantity = 0  # rejected by the order_items CHECK constraint

        with self.assertRaises(PersistenceError) as ctx:
            await checkout.place_order(cart, CONTACT, DeliverySelection(), notify=False)
        self.assertIsNotNone(ctx.exception.__cause__)

        _, total = await crud.list_orders()
        self.assertEqual(total, 2)
        self.assertEqual(len(cart), 2)

    async def test_read_back_failure_after_commit_still_returns_the_order(self):
        cart = CartLedger()
        cart.add(await crud.get_product(2), 2)
        failure = aiosqlite.OperationalError("database is locked")
        with mock.patch.object(crud, "get_order_detail", side_effect=failure):
            order = await checkout.place_order(
                cart, CONTACT, DeliverySelection(), when=datetime(2025, 10, 10, 9, 0), notify=False
            )
        self.assertEqual((order.status, order.total, order.created_at), ("pending", 135.6, datetime(2025, 10, 10, 9, 0)))

        saved, items = await crud.get_order_detail(order.id)
        self.assertEqual(saved, order)
        self.assertEqual([(i.product_id, i.quantity) for i in items], [(2, 2)])
        _, total = await crud.list_orders()
        self.assertEqual(total, 3)


if __name__ == "__main__":
    unittest.main()
