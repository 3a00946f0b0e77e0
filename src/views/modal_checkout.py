from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer, Select

from shop.checkout import PROVINCES, ContactInfo, DeliverySelection, compute_totals
from shop.errors import PersistenceError, ShopError, ValidationError
from utils.pure import fmt_money, generate_markdown_table
from views.modal_dialog import ConfirmModal

DELIVERY_OPTIONS = [
    ("Pickup (free)", "pickup"),
    ("Local delivery (free)", "delivery"),
    ("Shipping (+$50.00)", "shipping"),
]


class CheckoutModal(ModalScreen[int]):
    """
    Contact + delivery form with a live order summary.
    Dismisses with the new order id, or 0 when the shopper backs out.
    """

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-checkout"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with VerticalScroll(id="div-checkout-form"):
                yield Label("Contact")
                yield Input(placeholder="Full name", id="input-name")
                yield Input(placeholder="Email", id="input-email")
                yield Input(placeholder="Phone", id="input-phone")
                yield Input(placeholder="Company (optional)", id="input-company")
                yield Label("Delivery")
                yield Select(DELIVERY_OPTIONS, value="pickup", allow_blank=False, id="sel-method")
                with Vertical(id="div-address"):
                    yield Input(placeholder="Street address", id="input-address")
                    yield Input(placeholder="City", id="input-city")
                    yield Select(
                        [(p, p) for p in PROVINCES], value="ON", allow_blank=False, id="sel-province"
                    )
                    yield Input(placeholder="Postal code (A1A 1A1)", id="input-postal_code")
                yield Input(placeholder="Order notes (optional)", id="input-notes")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        customer = self.app.state.customer
        if customer:
            self.query_one("#input-name", Input).value = customer.name
            self.query_one("#input-email", Input).value = customer.email
            self.query_one("#input-phone", Input).value = customer.phone
            self.query_one("#input-company", Input).value = customer.company
        self.query_one("#div-address").display = False
        await self.render_summary()
        self.query_one("#input-name").focus()

    def _method(self) -> str:
        return self.query_one("#sel-method", Select).value

    async def render_summary(self) -> None:
        cart = self.app.state.cart
        rows = [
            [line.name, fmt_money(line.unit_price), line.quantity, fmt_money(line.line_total)]
            for line in cart
        ]
        md = "### Order Summary\n\n" + generate_markdown_table(
            ["Item", "Unit Price", "Qty", "Total"], rows, ["l", "r", "c", "r"]
        )
        totals = compute_totals(cart.subtotal(), self._method())
        md += (
            f"\n\n**Subtotal:** {fmt_money(totals.subtotal)}  \n"
            f"**HST (13%):** {fmt_money(totals.tax)}  \n"
            f"**Shipping:** {fmt_money(totals.shipping)}  \n"
            f"**Total:** {fmt_money(totals.total)}"
        )
        savings = cart.savings()
        if savings > 0:
            md += f"\n\n_You save {fmt_money(savings)} with customer pricing._"
        await self.query_one(MarkdownViewer).document.update(md)

    @on(Select.Changed, "#sel-method")
    async def handle_method_changed(self) -> None:
        self.query_one("#div-address").display = self._method() != "pickup"
        await self.render_summary()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(0)

    def _value(self, key: str) -> str:
        return self.query_one(f"#input-{key}", Input).value

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        for inp in self.query(Input):
            inp.remove_class("-invalid")
        contact = ContactInfo(
            self._value("name"), self._value("email"), self._value("phone"), self._value("company")
        )
        delivery = DeliverySelection(
            method=self._method(),
            address=self._value("address"),
            city=self._value("city"),
            province=self.query_one("#sel-province", Select).value,
            postal_code=self._value("postal_code"),
        )

        if not await self.app.push_screen_wait(
            ConfirmModal("Place order? This cannot be undone.", tone="positive")
        ):
            return

        try:
            order = await self.app.state.checkout(contact, delivery, self._value("notes"))
        except ValidationError as e:
            for inp in self.query(f"#input-{e.field}"):
                inp.add_class("-invalid")
                inp.focus()
            self.notify(f"{e.field.replace('_', ' ').capitalize()} {e.message}.", severity="error")
            return
        except PersistenceError as e:
            self.notify(
                f"{e} Your cart has been kept, please try again.", severity="error", timeout=10
            )
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return

        self.app.notify(
            f"Order #{order.id} placed. Total {fmt_money(order.total)}. Thank you!", timeout=8
        )
        self.dismiss(order.id)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(0)
