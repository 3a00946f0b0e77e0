from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label, Select

import db.crud
from db.models import STOCK_STATUSES
from shop.pricing import price_for
from utils.messages import CartChangedMessage
from utils.pure import fmt_money, humanize, page_count
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal
from views.modal_quote import QuoteModal

PAGE_SIZE = 10

SORT_OPTIONS = [
    ("Name A-Z", "name-asc"),
    ("Name Z-A", "name-desc"),
    ("Price: low to high", "price-asc"),
    ("Price: high to low", "price-desc"),
    ("Newest first", "date-newest"),
    ("Oldest first", "date-oldest"),
]


class CatalogScreen(BaseScreen):
    """
    Product and truck search for shoppers, with filters, sorting and pagination.
    """

    # only displayed in the footer
    BINDINGS = [
        Binding("fn+shift+1", "noop", "View Product", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self):
        super().__init__()
        self._filters = {
            "keyword": "",
            "category_id": None,
            "stock_status": None,
            "sort": "name-asc",
        }

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Search by name, description, SKU or VIN...")
        with Horizontal(id="hort-filters"):
            yield Select([], prompt="All categories", id="sel-category")
            yield Select(
                [(humanize(s), s) for s in STOCK_STATUSES],
                prompt="Any stock",
                id="sel-stock",
            )
            yield Select(SORT_OPTIONS, value="name-asc", allow_blank=False, id="sel-sort")
        yield DataTable(id="table-search-result")
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Label("Page 1 / 1", id="label-total-page-cnt")
            yield Button(">", id="btn-next")
            yield Button("Request a Part", id="btn-request-part", variant="primary")

    async def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "SKU / VIN", "Type", "Stock", "Price")

        categories = await db.crud.list_categories()
        self.query_one("#sel-category", Select).set_options(
            [(c.name, c.id) for c in categories]
        )
        self.query_one("#input-search").focus()
        self.update_search_result()

    @on(Input.Changed, "#input-search")
    def handle_search_changed(self, message: Input.Changed) -> None:
        self._filters["keyword"] = message.value
        self._reset_and_search()

    @on(Select.Changed)
    def handle_filter_changed(self, message: Select.Changed) -> None:
        value = None if message.value == Select.BLANK else message.value
        key = {
            "sel-category": "category_id",
            "sel-stock": "stock_status",
            "sel-sort": "sort",
        }.get(message.select.id)
        if key is None:
            return
        self._filters[key] = value if key != "sort" else (value or "name-asc")
        self._reset_and_search()

    def _reset_and_search(self) -> None:
        if self.page_idx != 1:
            self.page_idx = 1  # watcher reloads
        else:
            self.update_search_result()

    async def on_key(self, event: events.Key) -> None:
        table = self.query_one(DataTable)
        if event.key == "enter" and self.focused == table and table.row_count:
            self.open_detail(int(table.get_row_at(table.cursor_row)[0]))

    @work
    async def open_detail(self, product_id: int) -> None:
        if await self.app.push_screen_wait(ProdDetailModal(product_id)):
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    @on(Button.Pressed, "#btn-request-part")
    def handle_request_part(self) -> None:
        self.app.push_screen(QuoteModal(mode="part"))

    def watch_page_idx(self, _, new_page_idx: int) -> None:
        self.update_search_result(new_page_idx)

    @work(exclusive=True)
    async def update_search_result(self, page: Optional[int] = None) -> None:
        page = page or self.page_idx
        products, total = await db.crud.search_products(
            keyword=self._filters["keyword"],
            category_id=self._filters["category_id"],
            stock_status=self._filters["stock_status"],
            sort=self._filters["sort"],
            page=page,
            page_size=PAGE_SIZE,
        )
        viewer = self.app.state.viewer

        table = self.query_one(DataTable)
        table.clear()
        table.add_rows(
            [
                (
                    p.id,
                    p.name,
                    p.code,
                    humanize(p.kind),
                    humanize(p.stock_status),
                    fmt_money(price_for(p, viewer)),
                )
                for p in products
            ]
        )
        self.page_cnt = page_count(total, PAGE_SIZE)
        self.query_one("#label-total-page-cnt", Label).update(
            f"Page {page} / {self.page_cnt}  ({total} result(s))"
        )
        self.query_one("#btn-prev", Button).disabled = page <= 1
        self.query_one("#btn-next", Button).disabled = page >= self.page_cnt
