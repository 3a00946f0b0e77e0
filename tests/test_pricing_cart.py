import json
import os
import tempfile
import unittest

from store_case import src_path  # noqa: F401  (puts src/ on sys.path)

from db.models import Customer, Product
from shop.cart import CartLedger, CartStore
from shop.errors import ValidationError
from shop.pricing import ANONYMOUS, Viewer, customer_price_for, price_for


def make_product(pid=1, retail=100.0, customer=95.0, **kw) -> Product:
    return Product(
        id=pid,
        kind=kw.get("kind", "part"),
        name=kw.get("name", f"Part {pid}"),
        description="",
        sku=kw.get("sku", f"SKU-{pid}"),
        vin=kw.get("vin"),
        category_id=None,
        retail_price=retail,
        customer_price=customer,
        stock_status=kw.get("stock_status", "in_stock"),
        images=kw.get("images", ()),
    )


def make_customer(cid=2, is_admin=False) -> Customer:
    return Customer(
        id=cid,
        name="Alice Martin",
        email="alice@example.com",
        company="",
        phone="",
        subscribed=True,
        unsubscribe_token="tok",
        identity_id="idn",
        is_admin=is_admin,
    )


class PricingTestCase(unittest.TestCase):
    def test_viewer_flags(self):
        self.assertFalse(ANONYMOUS.is_authenticated)
        self.assertFalse(ANONYMOUS.is_admin)
        self.assertIsNone(ANONYMOUS.email)

        shopper = Viewer(make_customer())
        self.assertTrue(shopper.is_authenticated)
        self.assertFalse(shopper.is_admin)
        self.assertEqual(shopper.email, "alice@example.com")
        self.assertTrue(Viewer(make_customer(1, is_admin=True)).is_admin)

    def test_price_for_depends_on_viewer(self):
        p = make_product(retail=60.0, customer=57.0)
        self.assertEqual(price_for(p, ANONYMOUS), 60.0)
        self.assertEqual(price_for(p, Viewer(make_customer())), 57.0)

    def test_customer_price_for(self):
        self.assertEqual(customer_price_for(100.0), 95.0)
        self.assertEqual(customer_price_for(19.99), 18.99)
        self.assertEqual(customer_price_for(0.0), 0.0)

    def test_truck_code_falls_back_to_vin(self):
        truck = make_product(7, kind="truck", sku=None, vin="3AKJGLDR5JSJX1234")
        self.assertEqual(truck.code, "3AKJGLDR5JSJX1234")
        self.assertEqual(make_product(9, kind="truck", sku=None).code, "TRUCK-9")


class CartTestCase(unittest.TestCase):
    def test_add_merges_lines_and_keeps_snapshot_price(self):
        cart = CartLedger()
        cart.add(make_product(1, retail=100.0), 2)
        # a later price change does not touch the line already in the cart
        cart.add(make_product(1, retail=150.0), 1)
        self.assertEqual(len(cart), 1)
        line = cart.get(1)
        self.assertEqual((line.quantity, line.unit_price), (3, 100.0))
        self.assertEqual(cart.subtotal(), 300.0)
        self.assertEqual(cart.item_count(), 3)

    def test_add_rejects_non_positive_quantity(self):
        cart = CartLedger()
        with self.assertRaises(ValidationError) as ctx:
            cart.add(make_product(), 0)
        self.assertEqual(ctx.exception.field, "quantity")
        self.assertTrue(cart.is_empty)

    def test_update_quantity_and_remove(self):
        cart = CartLedger()
        cart.add(make_product(1))
        cart.add(make_product(2, retail=10.0, customer=9.5))
        cart.update_quantity(1, 4)
        self.assertEqual(cart.get(1).quantity, 4)
        cart.update_quantity(2, 0)
        self.assertIsNone(cart.get(2))
        cart.update_quantity(99, 3)  # unknown id is ignored
        cart.remove(99)
        self.assertEqual([l.product_id for l in cart], [1])
        cart.clear()
        self.assertTrue(cart.is_empty)
        self.assertEqual(cart.subtotal(), 0.0)

    def test_negative_quantity_removes_the_line(self):
        cart = CartLedger()
        cart.add(make_product(1), 3)
        cart.add(make_product(2, retail=10.0, customer=9.5), 1)
        cart.update_quantity(1, -2)
        self.assertIsNone(cart.get(1))
        self.assertEqual([l.product_id for l in cart], [2])
        self.assertEqual(cart.subtotal(), 10.0)

    def test_subtotal_ignores_line_order(self):
        items = [
            (make_product(1, retail=19.99, customer=18.99), 3),
            (make_product(2, retail=0.1, customer=0.1), 7),
            (make_product(3, retail=1234.56, customer=1172.83), 1),
        ]
        forward, backward = CartLedger(), CartLedger()
        for product, qty in items:
            forward.add(product, qty)
        for product, qty in reversed(items):
            backward.add(product, qty)
        self.assertEqual([l.product_id for l in backward], [3, 2, 1])
        self.assertEqual(forward.subtotal(), backward.subtotal())
        self.assertEqual(forward.subtotal(), round(19.99 * 3 + 0.1 * 7 + 1234.56, 2))

    def test_signed_in_shoppers_pay_customer_price_and_see_savings(self):
        cart = CartLedger(Viewer(make_customer()))
        cart.add(make_product(1, retail=100.0, customer=95.0), 2)
        cart.add(make_product(2, retail=60.0, customer=57.0), 1)
        self.assertEqual(cart.subtotal(), 247.0)
        self.assertEqual(cart.savings(), 13.0)

        anonymous = CartLedger()
        anonymous.add(make_product(1, retail=100.0, customer=95.0), 2)
        self.assertEqual(anonymous.subtotal(), 200.0)
        self.assertEqual(anonymous.savings(), 0.0)

    def test_first_image_is_kept_on_the_line(self):
        cart = CartLedger()
        line = cart.add(make_product(images=("/img/a.jpg", "/img/b.jpg")))
        self.assertEqual(line.image, "/img/a.jpg")


class CartStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_cart_survives_reload(self):
        store = CartStore("customer-2", self.temp_dir.name)
        cart = CartLedger(Viewer(make_customer()), store)
        cart.add(make_product(1), 2)
        cart.add(make_product(2, retail=60.0, customer=57.0))
        self.assertTrue(os.path.exists(store.path))

        reloaded = CartLedger(Viewer(make_customer()), CartStore("customer-2", self.temp_dir.name))
        self.assertEqual(reloaded.lines, cart.lines)

        # profiles do not share carts
        self.assertTrue(CartLedger(ANONYMOUS, CartStore("guest", self.temp_dir.name)).is_empty)

    def test_missing_and_corrupt_files_load_as_empty(self):
        store = CartStore("guest", self.temp_dir.name)
        self.assertEqual(store.load(), [])

        with open(store.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        with self.assertLogs("shop.cart", level="WARNING"):
            self.assertEqual(store.load(), [])

        with open(store.path, "w", encoding="utf-8") as f:
            json.dump([{"product_id": 1}], f)
        with self.assertLogs("shop.cart", level="WARNING"):
            self.assertEqual(store.load(), [])

    def test_save_leaves_no_temp_files(self):
        store = CartStore("guest", self.temp_dir.name)
        CartLedger(ANONYMOUS, store).add(make_product(1))
        self.assertEqual(os.listdir(self.temp_dir.name), ["cart-guest.json"])


if __name__ == "__main__":
    unittest.main()
