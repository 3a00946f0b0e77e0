from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select

import db.crud
from db.models import STOCK_STATUSES
from services.vin import decode_vin
from shop import inventory
from shop.errors import ShopError, ValidationError
from shop.pricing import customer_price_for
from utils.pure import fmt_money, humanize

TRUCK_FIELDS = ("make", "model", "year", "engine", "transmission", "gvw", "condition")


class ProductIntakeModal(ModalScreen[int]):
    """
    Admin entry of a new part or truck. For trucks the VIN can be decoded to
    prefill the vehicle fields; decoding is optional and manual entry always works.
    Dismisses with the new product id, or 0.
    """

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="div-intake"):
            yield Label("New Catalog Item", id="label-intake-title")
            yield Select(
                [("Part", "part"), ("Truck", "truck")], value="part", allow_blank=False, id="sel-kind"
            )
            with Vertical(id="div-part"):
                yield Label("SKU")
                yield Input(placeholder="e.g. BRK-3030", id="input-sku")
            with Vertical(id="div-truck"):
                yield Label("VIN (17 characters)")
                with Horizontal():
                    yield Input(placeholder="3AKJGLDR5JSJX1234", id="input-vin", max_length=17)
                    yield Button("Decode VIN", id="btn-decode")
                for key in TRUCK_FIELDS:
                    yield Input(placeholder=humanize(key), id=f"input-attr-{key}")
            yield Label("Name")
            yield Input(id="input-name")
            yield Label("Description")
            yield Input(id="input-description")
            yield Label("Category")
            yield Select([], prompt="None", id="sel-category")
            yield Label("Retail price ($)")
            yield Input(id="input-retail_price", type="number")
            yield Label("", id="label-customer-price")
            yield Label("Stock")
            yield Select(
                [(humanize(s), s) for s in STOCK_STATUSES],
                value="in_stock",
                allow_blank=False,
                id="sel-stock",
            )
            yield Label("Image URLs (comma separated)")
            yield Input(id="input-images")
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button("Save", id="btn-save", variant="primary")

    async def on_mount(self) -> None:
        self.query_one("#div-truck").display = False
        categories = await db.crud.list_categories()
        self.query_one("#sel-category", Select).set_options([(c.name, c.id) for c in categories])
        self.query_one("#sel-kind").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(0)

    @on(Button.Pressed, "#btn-quit")
    def handle_cancel(self) -> None:
        self.dismiss(0)

    def _value(self, key: str) -> str:
        return self.query_one(f"#input-{key}", Input).value.strip()

    @on(Select.Changed, "#sel-kind")
    def handle_kind(self, message: Select.Changed) -> None:
        is_truck = message.value == "truck"
        self.query_one("#div-truck").display = is_truck
        self.query_one("#div-part").display = not is_truck

    @on(Input.Changed, "#input-retail_price")
    def handle_price(self, message: Input.Changed) -> None:
        try:
            retail = float(message.value)
        except ValueError:
            self.query_one("#label-customer-price", Label).update("")
            return
        self.query_one("#label-customer-price", Label).update(
            f"Customer price: {fmt_money(customer_price_for(retail))}"
        )

    @on(Button.Pressed, "#btn-decode")
    @work(exclusive=True)
    async def handle_decode(self) -> None:
        button = self.query_one("#btn-decode", Button)
        button.disabled = True
        try:
            info = await decode_vin(self._value("vin"))
        except ValidationError as e:
            self.notify(f"VIN {e.message}.", severity="error")
            return
        finally:
            button.disabled = False

        if info is None:
            self.notify(
                "No vehicle data found for this VIN. Please fill in the details manually.",
                severity="warning",
            )
            return
        for key, value in info.as_attributes().items():
            for inp in self.query(f"#input-attr-{key}"):
                inp.value = value
        if not self._value("name"):
            self.query_one("#input-name", Input).value = f"{info.year} {info.make.title()} {info.model}".strip()
        self.notify("Vehicle details filled in from VIN.")

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        kind = self.query_one("#sel-kind", Select).value
        category = self.query_one("#sel-category", Select).value
        try:
            retail = float(self._value("retail_price"))
        except ValueError:
            self.notify("Retail price must be a number.", severity="error")
            self.query_one("#input-retail_price").focus()
            return
        attributes = {}
        if kind == "truck":
            attributes = {k: self._value(f"attr-{k}") for k in TRUCK_FIELDS if self._value(f"attr-{k}")}
        images = [u.strip() for u in self._value("images").split(",") if u.strip()]

        try:
            product = await inventory.add_product(
                kind=kind,
                name=self._value("name"),
                retail_price=retail,
                description=self._value("description"),
                sku=self._value("sku"),
                vin=self._value("vin"),
                category_id=None if category == Select.BLANK else category,
                stock_status=self.query_one("#sel-stock", Select).value,
                images=images,
                attributes=attributes,
            )
        except ValidationError as e:
            for inp in self.query(f"#input-{e.field}"):
                inp.focus()
            self.notify(f"{e.field.replace('_', ' ').capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return

        self.app.notify(f"Added {product.name} ({product.code}).")
        self.dismiss(product.id)
