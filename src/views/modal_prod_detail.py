from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.crud import get_product
from db.models import Product
from shop.errors import ShopError
from shop.pricing import price_for
from utils.messages import CartChangedMessage
from utils.pure import fmt_money, generate_markdown_table, humanize
from views.modal_quote import QuoteModal


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail plus add-to-cart / request-quote.
    Dismisses with True if the cart changed.
    """

    order_qty = reactive(1)

    def __init__(self, product_id: int) -> None:
        super().__init__()
        self._product_id = product_id
        self._prod: Product = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="vert-prod-actions"):
                yield Label("Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(
                        value="1",
                        id="input-order-qty",
                        type="integer",
                        validators=[Number(minimum=1)],
                    )
                    yield Button("+", id="btn-add-qty")
                yield Button("Add to Cart", id="btn-addcart", variant="primary")
                yield Button("Request Quote", id="btn-quote")
                yield Button("Go Back", id="btn-quit")

    async def on_mount(self):
        self._prod = await get_product(self._product_id)
        if self._prod is None:
            self.app.notify(f"Product #{self._product_id} not found.", severity="error")
            self.dismiss(False)
            return

        await self.query_one(MarkdownViewer).document.update(self._render_markdown())

        existing = self.app.state.cart.get(self._product_id)
        if existing:
            self.query_one("#btn-addcart", Button).label = f"Add More ({existing.quantity} in cart)"
        self.query_one("#input-order-qty").focus()

    def _render_markdown(self) -> str:
        prod = self._prod
        viewer = self.app.state.viewer
        price = price_for(prod, viewer)

        rows = [
            ["SKU" if prod.kind == "part" else "VIN", prod.code],
            ["Availability", humanize(prod.stock_status)],
        ]
        if viewer.is_authenticated:
            rows.append(["Retail price", fmt_money(prod.retail_price)])
            rows.append(["Your price", f"**{fmt_money(price)}**"])
            if prod.retail_price > prod.customer_price:
                rows.append(["You save", fmt_money(prod.retail_price - prod.customer_price)])
        else:
            rows.append(["Price", f"**{fmt_money(price)}**"])
        for key, value in prod.attributes.items():
            rows.append([humanize(key), value])

        md = f"### {prod.name}\n\n"
        if prod.description:
            md += prod.description + "\n\n"
        md += generate_markdown_table(["Detail", "Value"], rows, ["l", "l"])
        if not viewer.is_authenticated:
            md += "\n\n_Sign in to see customer pricing (5% off retail)._"
        if prod.stock_status == "out_of_stock":
            md += "\n\n_Currently out of stock. You can still order or ask for a quote._"
        return md

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        if self.order_qty > 1:
            self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    def handle_addcart(self):
        try:
            line = self.app.state.cart.add(self._prod, self.order_qty)
        except (ShopError, OSError) as e:
            self.app.notify(f"Could not update cart: {e}", severity="error")
            return
        self.app.notify(f"{line.name}: {line.quantity} in cart.")
        self.app.post_message(CartChangedMessage())
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quote")
    @work
    async def handle_quote(self):
        if await self.app.push_screen_wait(
            QuoteModal(mode="product", product=self._prod, quantity=self.order_qty)
        ):
            self.dismiss(False)
