from typing import Literal, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, TextArea

from db.models import Product
from shop import quotes
from shop.checkout import ContactInfo
from shop.errors import ShopError, ValidationError
from utils.messages import CartChangedMessage, NewQuoteMessage


class QuoteModal(ModalScreen[bool]):
    """
    Quote request form for one product, the whole cart, or a part we don't stock.
    Dismisses with True once the request is stored.
    """

    def __init__(
        self,
        mode: Literal["product", "cart", "part"] = "product",
        product: Optional[Product] = None,
        quantity: int = 1,
    ) -> None:
        super().__init__()
        self.mode = mode
        self.product = product
        self.quantity = quantity

    def compose(self) -> ComposeResult:
        titles = {
            "product": f"Request a Quote: {self.product.name if self.product else ''}",
            "cart": "Request a Quote for Your Cart",
            "part": "Request a Part (not in inventory)",
        }
        with VerticalScroll(id="div-quote"):
            yield Label(titles[self.mode], id="label-quote-title")
            yield Label("Name")
            yield Input(id="input-name")
            yield Label("Email")
            yield Input(id="input-email")
            yield Label("Phone")
            yield Input(id="input-phone")
            yield Label("Company")
            yield Input(id="input-company")
            if self.mode == "part":
                yield Label("Part description")
                yield Input(placeholder="e.g. Hood latch assembly", id="input-part_description")
                with Horizontal(id="hort-vehicle"):
                    yield Input(placeholder="Year", id="input-year")
                    yield Input(placeholder="Make", id="input-make")
                    yield Input(placeholder="Model", id="input-model")
            if self.mode != "cart":
                yield Label("Quantity")
                yield Input(str(self.quantity), id="input-quantity", type="integer")
            yield Label("Additional information")
            yield TextArea(id="text-message")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Submit Request", id="btn-submit", variant="primary")

    def on_mount(self) -> None:
        customer = self.app.state.customer
        if customer:
            self.query_one("#input-name", Input).value = customer.name
            self.query_one("#input-email", Input).value = customer.email
            self.query_one("#input-phone", Input).value = customer.phone
            self.query_one("#input-company", Input).value = customer.company
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _value(self, key: str) -> str:
        return self.query_one(f"#input-{key}", Input).value

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        for inp in self.query(Input):
            inp.remove_class("-invalid")
        contact = ContactInfo(
            name=self._value("name"),
            email=self._value("email"),
            phone=self._value("phone"),
            company=self._value("company"),
        )
        message = self.query_one("#text-message", TextArea).text
        try:
            quantity = int(self._value("quantity") or 0) if self.mode != "cart" else 0
            if self.mode == "product":
                await quotes.request_quote(contact, self.product.id, quantity, message)
            elif self.mode == "part":
                vehicle = quotes.Vehicle(
                    self._value("year"), self._value("make"), self._value("model")
                )
                await quotes.request_part(
                    contact, self._value("part_description"), vehicle, quantity, message
                )
            else:
                await self.app.state.request_cart_quote(contact, message)
                self.app.post_message(CartChangedMessage())
        except ValidationError as e:
            for inp in self.query(f"#input-{e.field}"):
                inp.add_class("-invalid")
                inp.focus()
            self.notify(f"{e.field.replace('_', ' ').capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return

        self.app.post_message(NewQuoteMessage())
        self.app.notify("Quote request sent. We'll get back to you shortly.")
        self.dismiss(True)
