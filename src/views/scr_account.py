from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, Checkbox, DataTable, Input, Label, MarkdownViewer

import db.crud
from db.models import Order, OrderItem
from shop import accounts
from shop.errors import ShopError, ValidationError
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import fmt_money, fmt_when, generate_markdown_table, humanize
from views.base_screen import BaseScreen


def render_order_markdown(order: Order, items: List[OrderItem]) -> str:
    """Order header, line items and totals as Markdown; shared with the back office."""
    header = (
        f"### Order #{order.id}  ({humanize(order.status)})\n"
        f"Placed: {fmt_when(order.created_at)}  \n"
        f"Updated: {fmt_when(order.updated_at)}  \n"
        f"Customer: {order.customer_name} <{order.customer_email}> {order.customer_phone}  \n"
    )
    if order.customer_company:
        header += f"Company: {order.customer_company}  \n"
    header += f"Delivery: {humanize(order.delivery_method)}"
    if order.delivery_method != "pickup":
        header += (
            f" to {order.delivery_address}, {order.delivery_city} "
            f"{order.delivery_province} {order.delivery_postal_code}"
        )
    header += "\n\n"
    rows = [
        [i.product_name, i.product_sku, i.quantity, fmt_money(i.price), fmt_money(i.subtotal)]
        for i in items
    ]
    table = generate_markdown_table(
        ["Product", "SKU / VIN", "Qty", "Unit Price", "Line Total"],
        rows,
        ["l", "l", "r", "r", "r"],
    )
    footer = (
        f"\n\nSubtotal: {fmt_money(order.subtotal)}  \n"
        f"HST: {fmt_money(order.tax)}  \n"
        f"Shipping: {fmt_money(order.shipping)}  \n"
        f"**Total: {fmt_money(order.total)}**"
    )
    if order.notes:
        footer += f"\n\nNotes: {order.notes}"
    return header + table + footer


class AccountScreen(BaseScreen):
    """
    Signed-in customers: order history with details, and profile / newsletter settings.
    """

    BINDINGS = [
        Binding("enter", "noop", "View Order Detail", show=True, key_display="⏎"),
    ]

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-account"):
            with Vertical(id="vert-orders"):
                yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
                yield DataTable(id="table-orders")
            with Vertical(id="vert-profile"):
                yield Label("Profile")
                yield Label("Name")
                yield Input(id="input-name")
                yield Label("Phone")
                yield Input(id="input-phone")
                yield Label("Company")
                yield Input(id="input-company")
                yield Checkbox("Email me deals and new arrivals", id="chk-subscribed")
                yield Button("Save Profile", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Status", "Delivery", "Total")
        self._fill_profile()

    def _fill_profile(self) -> None:
        customer = self.app.state.customer
        if customer is None:
            self.query_one("#vert-profile").display = False
            return
        self.query_one("#input-name", Input).value = customer.name
        self.query_one("#input-phone", Input).value = customer.phone
        self.query_one("#input-company", Input).value = customer.company
        self.query_one("#chk-subscribed", Checkbox).value = customer.subscribed

    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self):
        self._load_orders()

    @work(exclusive=True, group="orders")
    async def _load_orders(self) -> None:
        customer = self.app.state.customer
        viewer_md = self.query_one("#md-order-detail", MarkdownViewer)
        table = self.query_one(DataTable)
        table.clear()
        if customer is None:
            await viewer_md.document.update("### Sign in to see your order history.")
            return

        orders = await db.crud.list_orders_for_email(customer.email)
        for o in orders:
            table.add_row(
                o.id,
                fmt_when(o.created_at),
                humanize(o.status),
                humanize(o.delivery_method),
                fmt_money(o.total),
            )
        if orders:
            table.cursor_coordinate = (0, 0)
            self._load_and_render_detail(orders[0].id)
        else:
            await viewer_md.document.update("### No orders yet.")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0 or event.cursor_row is None:
            return
        self._load_and_render_detail(int(table.get_row_at(event.cursor_row)[0]))

    @work(exclusive=True, group="detail")
    async def _load_and_render_detail(self, order_id: int) -> None:
        order, items = await db.crud.get_order_detail(order_id)
        md = render_order_markdown(order, items) if order else "### Order not found."
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(md)

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        customer = self.app.state.customer
        if customer is None:
            return
        try:
            await accounts.update_profile(
                customer.id,
                self.query_one("#input-name", Input).value,
                self.query_one("#input-phone", Input).value,
                self.query_one("#input-company", Input).value,
                self.query_one("#chk-subscribed", Checkbox).value,
            )
        except ValidationError as e:
            self.notify(f"{e.field.capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        await self.app.state.refresh_customer()
        self.notify("Profile saved.")
