from datetime import date
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer, Select

import db.crud
from db.models import ORDER_STATUSES
from shop import workflow
from shop.errors import ShopError
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import fmt_money, fmt_when, humanize, page_count
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal
from views.scr_account import render_order_markdown

PAGE_SIZE = 10


def _parse_day(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip()) if value.strip() else None
    except ValueError:
        return None


class AdminOrdersScreen(BaseScreen):
    """
    All orders, filterable by status and date range, with detail and status control.
    """

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._selected: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-filters"):
            yield Select(
                [(humanize(s), s) for s in ORDER_STATUSES], prompt="All statuses", id="sel-filter"
            )
            yield Input(placeholder="From YYYY-MM-DD", id="input-since")
            yield Input(placeholder="To YYYY-MM-DD", id="input-until")
            yield Button("Apply", id="btn-apply")
        with Vertical():
            yield DataTable(id="table-orders")
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Label(" 1 / 1 ", id="label-total-page-cnt")
            yield Button(">", id="btn-next")
            yield Select(
                [(humanize(s), s) for s in ORDER_STATUSES],
                prompt="Set status...",
                id="sel-status",
            )
            yield Button("Update Status", id="btn-update", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Customer", "Delivery", "Status", "Total")

    @on(NewOrderMessage)
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @on(Button.Pressed, "#btn-apply")
    @on(Select.Changed, "#sel-filter")
    def handle_refresh(self) -> None:
        self._load_orders(self.page_idx)

    def watch_page_idx(self, _, new: int) -> None:
        self._load_orders(new)

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    @work(exclusive=True, group="orders")
    async def _load_orders(self, page: int) -> None:
        status = self.query_one("#sel-filter", Select).value
        since_raw = self.query_one("#input-since", Input).value
        until_raw = self.query_one("#input-until", Input).value
        since, until = _parse_day(since_raw), _parse_day(until_raw)
        if (since_raw.strip() and since is None) or (until_raw.strip() and until is None):
            self.notify("Dates must look like 2025-09-30.", severity="warning")

        orders, total = await db.crud.list_orders(
            status=None if status == Select.BLANK else status,
            since=since,
            until=until,
            page=page,
            page_size=PAGE_SIZE,
        )
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.id,
                fmt_when(o.created_at),
                o.customer_name,
                humanize(o.delivery_method),
                humanize(o.status),
                fmt_money(o.total),
            )
        self.page_cnt = page_count(total, PAGE_SIZE)
        self.query_one("#label-total-page-cnt", Label).update(f" {page} / {self.page_cnt} ")
        self.query_one("#btn-prev", Button).disabled = page <= 1
        self.query_one("#btn-next", Button).disabled = page >= self.page_cnt
        if orders:
            table.cursor_coordinate = (0, 0)
            self._render_detail(orders[0].id)
        else:
            self._selected = None
            await self.query_one(MarkdownViewer).document.update("### No matching orders.")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        table = self.query_one(DataTable)
        if table.row_count and event.cursor_row is not None:
            self._render_detail(int(table.get_row_at(event.cursor_row)[0]))

    @work(exclusive=True, group="detail")
    async def _render_detail(self, order_id: int) -> None:
        order, items = await db.crud.get_order_detail(order_id)
        self._selected = order.id if order else None
        md = render_order_markdown(order, items) if order else "### Order not found."
        await self.query_one(MarkdownViewer).document.update(md)

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True)
    async def handle_update(self) -> None:
        new_status = self.query_one("#sel-status", Select).value
        if self._selected is None or new_status == Select.BLANK:
            self.notify("Pick an order and a status first.", severity="warning")
            return
        order = await db.crud.get_order(self._selected)
        if order and order.status in workflow.TERMINAL_ORDER_STATUSES:
            if not await self.app.push_screen_wait(
                ConfirmModal(
                    f"Order #{order.id} is {order.status}. Change it to {new_status} anyway?"
                )
            ):
                return
        try:
            updated = await workflow.change_order_status(self._selected, new_status)
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Order #{updated.id} is now {humanize(updated.status)}.")
        self._load_orders(self.page_idx)
