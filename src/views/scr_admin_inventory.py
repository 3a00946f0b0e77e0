from __future__ import annotations

from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList, Select
from textual.widgets.option_list import Option

from db.crud import get_product, search_products
from db.models import STOCK_STATUSES
from shop import inventory
from shop.errors import ShopError
from utils.pure import fmt_money, fmt_when, generate_markdown_table, humanize
from views.base_screen import BaseScreen
from views.modal_product_intake import ProductIntakeModal


class AdminInventoryScreen(BaseScreen):
    """
    Admins search the catalog, adjust retail price / stock status, and add parts or trucks.
    """

    current_id: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-search"):
                yield Input(id="input-search", placeholder="Search for product, SKU or VIN...")
                yield Button("Add Part / Truck", id="btn-intake", variant="primary")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Horizontal(id="div-new-inputs"):
                    with Vertical():
                        yield Label("New Retail Price ($):")
                        yield Input(
                            placeholder="leave blank to keep",
                            id="input-price",
                            type="number",
                            validators=[Number(minimum=0.0)],
                        )
                    with Vertical():
                        yield Label("Stock Status:")
                        yield Select(
                            [(humanize(s), s) for s in STOCK_STATUSES],
                            prompt="keep",
                            id="sel-stock",
                        )
                with Horizontal(id="div-button"):
                    yield Button("Update", id="btn-update", variant="success")

    def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")
        self.update_optlist("")

    @on(Input.Changed, "#input-search")
    def handle_search(self, message: Input.Changed) -> None:
        self.query_one("#optlist-prods").remove_class("hidden")
        self.update_optlist(message.value)

    def on_option_list_option_selected(self, message: OptionList.OptionSelected):
        self.current_id = int(message.option.id)
        self.render_product()

        self.query_one("#optlist-prods").add_class("hidden")
        self.query_one("#md-prod").remove_class("hidden")
        self.query_one("#hort-controls").remove_class("hidden")

    @work(exclusive=True)
    async def update_optlist(self, query: str):
        results, _ = await search_products(keyword=query, page_size=25)

        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [
                Option(f"{p.id:>4}  {p.name}  ({p.code})  {fmt_money(p.retail_price)}", id=str(p.id))
                for p in results
            ]
        )

    @work(exclusive=True)
    async def render_product(self) -> None:
        prod = await get_product(self.current_id)
        if prod is None:
            self.notify(f"Product #{self.current_id} no longer exists.", severity="error")
            return

        rows = [
            ["ID", prod.id],
            ["Type", humanize(prod.kind)],
            ["SKU / VIN", prod.code],
            ["Retail price", fmt_money(prod.retail_price)],
            ["Customer price", fmt_money(prod.customer_price)],
            ["Stock", humanize(prod.stock_status)],
            ["Added", fmt_when(prod.created_at)],
        ]
        rows += [[humanize(k), v] for k, v in prod.attributes.items()]
        md_table = generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        await self.query_one("#md-prod", MarkdownViewer).document.update(
            f"### {prod.name}\n\n{prod.description}\n\n" + md_table
        )

        self.query_one("#input-price", Input).value = f"{prod.retail_price:.2f}"
        self.query_one("#sel-stock", Select).value = prod.stock_status

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True)
    async def handle_update(self) -> None:
        prod = await get_product(self.current_id)
        if prod is None:
            return

        price_input = self.query_one("#input-price", Input)
        if price_input.value.strip() and not price_input.is_valid:
            price_input.focus()
            price_input.add_class("-invalid")
            return

        new_price = float(price_input.value) if price_input.value.strip() else None
        new_stock = self.query_one("#sel-stock", Select).value
        new_stock = None if new_stock == Select.BLANK else new_stock

        if new_price is not None and round(new_price, 2) == prod.retail_price:
            new_price = None
        if new_stock == prod.stock_status:
            new_stock = None
        if new_price is None and new_stock is None:
            self.notify("Nothing to update.", severity="warning")
            return

        try:
            updated = await inventory.update_pricing_and_stock(prod.id, new_price, new_stock)
        except ShopError as e:
            self.notify(f"Update failed: {e}", severity="error")
            return
        msg = "Product updated."
        if new_price is not None:
            msg += f" Customer price is now {fmt_money(updated.customer_price)}."
        self.notify(msg)
        self.render_product()

    @on(Button.Pressed, "#btn-intake")
    @work
    async def handle_intake(self) -> None:
        product_id = await self.app.push_screen_wait(ProductIntakeModal())
        if product_id:
            self.current_id = product_id
            self.render_product()
            self.query_one("#optlist-prods").add_class("hidden")
            self.query_one("#md-prod").remove_class("hidden")
            self.query_one("#hort-controls").remove_class("hidden")
