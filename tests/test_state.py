import unittest

from store_case import StoreTestCase

from db import crud
from shop.checkout import ContactInfo, DeliverySelection
from shop.errors import ValidationError
from utils.pure import fmt_money, generate_markdown_table, humanize, page_count
from utils.state import SessionState

CONTACT = ContactInfo(name="Alice Martin", email="alice@example.com", phone="416-555-0101")


class SessionStateTestCase(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.state = SessionState(cart_dir=self.temp_dir.name)

    async def test_login_loads_that_customers_cart(self):
        self.assertFalse(await self.state.login("alice@example.com", "wrong"))
        self.assertIsNone(self.state.role)

        self.assertTrue(await self.state.login("alice@example.com", "password1"))
        self.assertEqual(self.state.role, "customer")
        self.state.cart.add(await crud.get_product(2), 2)
        self.assertEqual(self.state.cart.subtotal(), 114.0)

        self.state.logout()
        self.assertIsNone(self.state.customer)
        self.assertTrue(self.state.cart.is_empty)

        # the cart is waiting on the next login of the same customer
        await self.state.login("alice@example.com", "password1")
        self.assertEqual(self.state.cart.item_count(), 2)

    async def test_admin_and_guest_roles(self):
        await self.state.login("admin@ccomponents.ca", "admin123")
        self.assertEqual(self.state.role, "admin")
        self.state.logout()
        self.state.continue_as_guest()
        self.assertEqual(self.state.role, "guest")
        self.assertFalse(self.state.viewer.is_authenticated)

    async def test_checkout_clears_cart_only_on_success(self):
        await self.state.login("alice@example.com", "password1")
        self.state.cart.add(await crud.get_product(6), 1)

        with self.assertRaises(ValidationError):
            await self.state.checkout(CONTACT, DeliverySelection("delivery"))
        self.assertEqual(len(self.state.cart), 1)

        order = await self.state.checkout(CONTACT, DeliverySelection())
        self.assertEqual(order.subtotal, 76.0)
        self.assertTrue(self.state.cart.is_empty)
        history = await crud.list_orders_for_email("alice@example.com")
        self.assertEqual([o.id for o in history], [order.id, 1])

    async def test_cart_quote_clears_cart(self):
        self.state.continue_as_guest()
        self.state.cart.add(await crud.get_product(3), 1)
        created = await self.state.request_cart_quote(CONTACT, "Need by Friday")
        self.assertEqual([q.product_id for q in created], [3])
        self.assertTrue(self.state.cart.is_empty)

    async def test_refresh_customer_picks_up_profile_changes(self):
        await self.state.login("bob@example.com", "password2")
        await crud.update_customer_profile(3, "Robert", "1", "", True)
        await self.state.refresh_customer()
        self.assertEqual(self.state.customer.name, "Robert")
        self.assertIs(self.state.cart.viewer, self.state.viewer)


class PureTestCase(unittest.TestCase):
    def test_markdown_table(self):
        table = generate_markdown_table(["A", "B"], [["x|y", 1], [None, "2"]], ["l", "r"])
        self.assertEqual(table, "| A | B |\n| :--- | ---: |\n| x\\|y | 1 |\n|  | 2 |")
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [["1", "2"]], ["l"])

    def test_formatters(self):
        self.assertEqual(fmt_money(1234.5), "$1,234.50")
        self.assertEqual(fmt_money(-5), "-$5.00")
        self.assertEqual(fmt_money(None), "-")
        self.assertEqual(humanize("out_of_stock"), "Out of stock")
        self.assertEqual((page_count(0, 10), page_count(10, 10), page_count(11, 10)), (1, 1, 2))


if __name__ == "__main__":
    unittest.main()
