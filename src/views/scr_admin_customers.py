from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, MarkdownViewer

import db.crud
from db.models import Customer
from shop import accounts
from shop.errors import ShopError
from utils.messages import ModeSwitchedMessage
from utils.pure import fmt_money, fmt_when, humanize
from views.base_screen import BaseScreen
from views.modal_customer_edit import CustomerEditModal
from views.modal_dialog import ConfirmModal


class AdminCustomersScreen(BaseScreen):
    """
    Registered customers: search, edit contact details or subscription, delete shoppers.
    """

    def __init__(self) -> None:
        super().__init__()
        self._customers: List[Customer] = []
        self._selected: Optional[Customer] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-filters"):
            yield Input(id="input-search", placeholder="Search by name, email or company...")
        with Vertical():
            yield DataTable(id="table-customers")
            yield MarkdownViewer(id="md-customer", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Button("Edit", id="btn-edit", variant="primary")
            yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Name", "Email", "Company", "Phone", "Subscribed", "Joined")

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @on(Input.Changed, "#input-search")
    @work(exclusive=True, group="customers")
    async def handle_reload(self) -> None:
        keyword = self.query_one("#input-search", Input).value
        self._customers = await db.crud.list_customers(keyword)
        table = self.query_one(DataTable)
        table.clear()
        for c in self._customers:
            name = f"{c.name} (admin)" if c.is_admin else c.name
            table.add_row(
                c.id,
                name,
                c.email,
                c.company or "-",
                c.phone or "-",
                "Yes" if c.subscribed else "No",
                fmt_when(c.created_at),
            )
        if self._customers:
            table.cursor_coordinate = (0, 0)
            await self._render(self._customers[0])
        else:
            self._selected = None
            await self.query_one(MarkdownViewer).document.update("### No customers found.")

    async def _render(self, customer: Customer) -> None:
        self._selected = customer
        self.query_one("#btn-delete", Button).disabled = customer.is_admin
        orders = await db.crud.list_orders_for_email(customer.email)
        md = (
            f"### {customer.name}\n\n"
            f"Email: {customer.email}  \n"
            f"Phone: {customer.phone or 'Not provided'}  \n"
            f"Company: {customer.company or '-'}  \n"
            f"Marketing email: {'subscribed' if customer.subscribed else 'unsubscribed'}  \n"
            f"Joined: {fmt_when(customer.created_at)}\n\n"
        )
        if orders:
            md += "#### Orders\n\n" + "\n".join(
                f"- #{o.id} {fmt_when(o.created_at)} {fmt_money(o.total)} ({humanize(o.status)})"
                for o in orders
            )
        else:
            md += "_No orders yet._"
        await self.query_one(MarkdownViewer).document.update(md)

    @on(DataTable.RowHighlighted)
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.cursor_row is not None and event.cursor_row < len(self._customers):
            await self._render(self._customers[event.cursor_row])

    @on(Button.Pressed, "#btn-edit")
    @work
    async def handle_edit(self) -> None:
        if self._selected is None:
            return
        if await self.app.push_screen_wait(CustomerEditModal(self._selected)):
            self.handle_reload()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        if self._selected is None:
            return
        customer = self._selected
        if not await self.app.push_screen_wait(
            ConfirmModal(
                f"Delete {customer.name} <{customer.email}>? Their orders are kept.",
                tone="error",
                confirm_text="Delete",
                cancel_text="Cancel",
            )
        ):
            return
        try:
            await accounts.delete_customer(customer.id)
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Deleted {customer.name}.")
        self.handle_reload()
