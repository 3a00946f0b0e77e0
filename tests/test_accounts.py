import unittest

from store_case import StoreTestCase

from db import crud
from shop import accounts
from shop.errors import NotFoundError, ValidationError


class PasswordTestCase(unittest.TestCase):
    def test_hash_and_verify(self):
        stored = accounts.hash_password("hunter22", salt="abc")
        self.assertTrue(stored.startswith("pbkdf2_sha256$120000$abc$"))
        self.assertTrue(accounts.verify_password("hunter22", stored))
        self.assertFalse(accounts.verify_password("hunter23", stored))
        self.assertFalse(accounts.verify_password("hunter22", "plain-text"))
        self.assertNotEqual(accounts.hash_password("same"), accounts.hash_password("same"))


class AuthTestCase(StoreTestCase):
    async def test_authenticate_seeded_accounts(self):
        admin = await accounts.authenticate("admin@ccomponents.ca", "admin123")
        self.assertTrue(admin.is_admin)
        alice = await accounts.authenticate(" alice@example.com ", "password1")
        self.assertEqual(alice.customer.id, 2)
        self.assertFalse(alice.is_admin)

        self.assertIsNone(await accounts.authenticate("alice@example.com", "password2"))
        self.assertIsNone(await accounts.authenticate("nobody@example.com", "password1"))

    async def test_signup_then_login(self):
        customer = await accounts.signup("Nia Lee", "Nia@Example.com", "s3cret!", phone="416-555-0000")
        self.assertEqual(customer.email, "nia@example.com")
        self.assertTrue(customer.subscribed)
        self.assertTrue(customer.unsubscribe_token)
        self.assertIsNotNone(customer.identity_id)

        viewer = await accounts.authenticate("nia@example.com", "s3cret!")
        self.assertEqual(viewer.customer.id, customer.id)

    async def test_signup_validation(self):
        cases = [
            (("", "x@example.com", "secret1"), "name"),
            (("X", "not-an-email", "secret1"), "email"),
            (("X", "x@example.com", "123"), "password"),
            (("X", "ALICE@example.com", "secret1"), "email"),
            (("X", "carol@example.com", "secret1"), "email"),  # profile without a login
        ]
        for args, field in cases:
            with self.subTest(args=args):
                with self.assertRaises(ValidationError) as ctx:
                    await accounts.signup(*args)
                self.assertEqual(ctx.exception.field, field)

    async def test_update_profile(self):
        bob = await accounts.update_profile(3, " Robert Singh ", "905-555-0000", "", True)
        self.assertEqual((bob.name, bob.phone, bob.company, bob.subscribed), ("Robert Singh", "905-555-0000", "", True))
        with self.assertRaises(ValidationError):
            await accounts.update_profile(3, "", "", "", False)
        with self.assertRaises(NotFoundError):
            await accounts.update_profile(999, "X", "", "", False)


class AdminCustomerTestCase(StoreTestCase):
    async def test_list_customers(self):
        everyone = await crud.list_customers()
        self.assertEqual([c.id for c in everyone], [4, 3, 2, 1])
        self.assertEqual([c.id for c in await crud.list_customers("haulage")], [2])
        self.assertEqual(await crud.list_customers("nobody"), [])

    async def test_admin_edit_moves_login_email(self):
        alice = await accounts.admin_update_customer(
            2, "Alice Martin", " Alice.M@Example.com ", "416-555-0102", "Martin Haulage", False
        )
        self.assertEqual((alice.email, alice.phone, alice.subscribed), ("alice.m@example.com", "416-555-0102", False))
        viewer = await accounts.authenticate("alice.m@example.com", "password1")
        self.assertEqual(viewer.customer.id, 2)
        self.assertIsNone(await accounts.authenticate("alice@example.com", "password1"))

    async def test_admin_edit_without_login_and_same_email(self):
        carol = await accounts.admin_update_customer(4, "Carol Chen", "CAROL@example.com", "", "Chen Freight", True)
        self.assertEqual((carol.email, carol.company), ("carol@example.com", "Chen Freight"))

    async def test_admin_edit_validation(self):
        with self.assertRaises(ValidationError) as ctx:
            await accounts.admin_update_customer(2, "Alice", "bob@example.com", "", "", True)
        self.assertEqual(ctx.exception.field, "email")
        with self.assertRaises(ValidationError):
            await accounts.admin_update_customer(2, "Alice", "no-at-sign", "", "", True)
        with self.assertRaises(ValidationError):
            await accounts.admin_update_customer(2, " ", "alice@example.com", "", "", True)
        with self.assertRaises(NotFoundError):
            await accounts.admin_update_customer(999, "X", "x@example.com", "", "", True)

    async def test_delete_customer(self):
        await accounts.delete_customer(2)
        self.assertIsNone(await crud.get_customer(2))
        self.assertIsNone(await crud.get_password_hash("alice@example.com"))
        self.assertEqual(len(await crud.list_orders_for_email("alice@example.com")), 1)
        self.assertTrue(await crud.email_available("alice@example.com"))

        with self.assertRaises(NotFoundError):
            await accounts.delete_customer(2)
        with self.assertRaises(ValidationError):
            await accounts.delete_customer(1)
        self.assertIsNotNone(await crud.get_customer(1))

class UnsubscribeTestCase(StoreTestCase):
    async def test_unsubscribe_is_idempotent(self):
        first = await accounts.redeem_unsubscribe("tok-alice-0002")
        self.assertEqual((first.outcome, first.email, first.ok), ("unsubscribed", "alice@example.com", True))
        self.assertFalse((await crud.get_customer(2)).subscribed)

        again = await accounts.redeem_unsubscribe("tok-alice-0002")
        self.assertEqual((again.outcome, again.ok), ("already_unsubscribed", True))
        self.assertFalse((await crud.get_customer(2)).subscribed)

    async def test_invalid_tokens(self):
        for token in ("", "   ", "tok-nobody", None):
            with self.subTest(token=token):
                result = await accounts.redeem_unsubscribe(token)
                self.assertEqual((result.outcome, result.ok, result.email), ("invalid", False, None))
        subscribed = [c.email for c in await crud.list_subscribed_customers()]
        self.assertEqual(subscribed, ["alice@example.com", "carol@example.com"])


if __name__ == "__main__":
    unittest.main()
