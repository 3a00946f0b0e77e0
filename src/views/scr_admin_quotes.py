from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, MarkdownViewer, Select

import db.crud
from db.models import QUOTE_STATUSES, QuoteRequest
from shop import workflow
from shop.errors import ShopError
from utils.messages import ModeSwitchedMessage, NewQuoteMessage
from utils.pure import fmt_when, humanize
from views.base_screen import BaseScreen


class AdminQuotesScreen(BaseScreen):
    """
    Quote requests, newest first; admins move them through new/contacted/quoted/closed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._quotes: List[QuoteRequest] = []
        self._selected: Optional[QuoteRequest] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-filters"):
            yield Select(
                [(humanize(s), s) for s in QUOTE_STATUSES], prompt="All statuses", id="sel-filter"
            )
        with Vertical():
            yield DataTable(id="table-quotes")
            yield MarkdownViewer(id="md-quote", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Select(
                [(humanize(s), s) for s in QUOTE_STATUSES], prompt="Set status...", id="sel-status"
            )
            yield Button("Update Status", id="btn-update", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Date", "Customer", "Product", "Qty", "Status")

    @on(NewQuoteMessage)
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @on(Select.Changed, "#sel-filter")
    @work(exclusive=True, group="quotes")
    async def handle_reload(self) -> None:
        status = self.query_one("#sel-filter", Select).value
        self._quotes = await db.crud.list_quotes(None if status == Select.BLANK else status)
        table = self.query_one(DataTable)
        table.clear()
        for q in self._quotes:
            table.add_row(
                q.id,
                fmt_when(q.created_at),
                q.customer_name,
                q.product_name or "Part request",
                q.quantity,
                humanize(q.status),
            )
        if self._quotes:
            table.cursor_coordinate = (0, 0)
            await self._render(self._quotes[0])
        else:
            self._selected = None
            await self.query_one(MarkdownViewer).document.update("### No quote requests.")

    async def _render(self, quote: QuoteRequest) -> None:
        self._selected = quote
        md = (
            f"### Quote #{quote.id}  ({humanize(quote.status)})\n\n"
            f"Received: {fmt_when(quote.created_at)}  \n"
            f"Customer: {quote.customer_name} <{quote.customer_email}>  \n"
            f"Phone: {quote.customer_phone or 'Not provided'}  \n"
            f"Company: {quote.customer_company or '-'}  \n"
            f"Product: {quote.product_name or 'Not in inventory'}  \n"
            f"Quantity: {quote.quantity}\n\n"
            "```\n" + (quote.message or "(no message)") + "\n```"
        )
        await self.query_one(MarkdownViewer).document.update(md)

    @on(DataTable.RowHighlighted)
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.cursor_row is not None and event.cursor_row < len(self._quotes):
            await self._render(self._quotes[event.cursor_row])

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True)
    async def handle_update(self) -> None:
        new_status = self.query_one("#sel-status", Select).value
        if self._selected is None or new_status == Select.BLANK:
            self.notify("Pick a quote and a status first.", severity="warning")
            return
        try:
            updated = await workflow.change_quote_status(self._selected.id, new_status)
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Quote #{updated.id} is now {humanize(updated.status)}.")
        self.handle_reload()
