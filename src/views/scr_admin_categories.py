from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable

import db.crud
from db.models import Category
from shop import inventory
from shop.errors import ShopError
from utils.messages import ModeSwitchedMessage
from views.base_screen import BaseScreen
from views.modal_category_edit import CategoryEditModal
from views.modal_dialog import ConfirmModal


class AdminCategoriesScreen(BaseScreen):
    """Catalog categories with their product counts."""

    def __init__(self) -> None:
        super().__init__()
        self._categories: List[Category] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-categories")
        with Horizontal(id="hort-table-control"):
            yield Button("New", id="btn-new", variant="primary")
            yield Button("Edit", id="btn-edit")
            yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Name", "Description", "Products")

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True, group="categories")
    async def handle_reload(self) -> None:
        self._categories = await db.crud.list_categories()
        counts = await db.crud.count_products_by_category()
        table = self.query_one(DataTable)
        table.clear()
        for c in self._categories:
            table.add_row(c.id, c.name, c.description or "-", counts.get(c.id, 0))

    def _selected(self) -> Optional[Category]:
        row = self.query_one(DataTable).cursor_row
        if row is None or row >= len(self._categories):
            return None
        return self._categories[row]

    @on(Button.Pressed, "#btn-new")
    @work
    async def handle_new(self) -> None:
        if await self.app.push_screen_wait(CategoryEditModal()):
            self.handle_reload()

    @on(Button.Pressed, "#btn-edit")
    @work
    async def handle_edit(self) -> None:
        category = self._selected()
        if category is None:
            return
        if await self.app.push_screen_wait(CategoryEditModal(category)):
            self.handle_reload()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        category = self._selected()
        if category is None:
            return
        if not await self.app.push_screen_wait(
            ConfirmModal(
                f"Delete category '{category.name}'? Its products become uncategorized.",
                tone="error",
                confirm_text="Delete",
                cancel_text="Cancel",
            )
        ):
            return
        try:
            await inventory.delete_category(category.id)
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Deleted {category.name}.")
        self.handle_reload()
