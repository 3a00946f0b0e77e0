from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Label

from db.models import Customer
from shop import accounts
from shop.errors import ShopError, ValidationError


class CustomerEditModal(ModalScreen[bool]):
    """Admin edit of a customer's contact details and mailing preference."""

    def __init__(self, customer: Customer):
        super().__init__()
        self.customer = customer

    def compose(self) -> ComposeResult:
        c = self.customer
        with Vertical(id="div-customer-edit"):
            yield Label(f"Customer #{c.id}", id="label-customer-title")
            yield Label("Name")
            yield Input(c.name, id="input-name")
            yield Label("Email")
            yield Input(c.email, id="input-email")
            yield Label("Phone")
            yield Input(c.phone, id="input-phone")
            yield Label("Company")
            yield Input(c.company, id="input-company")
            yield Checkbox("Subscribed to marketing email", c.subscribed, id="chk-subscribed")
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button("Save", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-quit")
    def handle_cancel(self) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        try:
            updated = await accounts.admin_update_customer(
                self.customer.id,
                self.query_one("#input-name", Input).value,
                self.query_one("#input-email", Input).value,
                self.query_one("#input-phone", Input).value,
                self.query_one("#input-company", Input).value,
                self.query_one("#chk-subscribed", Checkbox).value,
            )
        except ValidationError as e:
            for inp in self.query(f"#input-{e.field}"):
                inp.focus()
            self.notify(f"{e.field.capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.app.notify(f"Saved {updated.name}.")
        self.dismiss(True)
