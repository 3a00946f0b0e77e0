from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from db.models import Category
from shop import inventory
from shop.errors import ShopError, ValidationError


class CategoryEditModal(ModalScreen[int]):
    """New category, or edit of an existing one. Dismisses with the category id, or 0."""

    def __init__(self, category: Optional[Category] = None):
        super().__init__()
        self.category = category

    def compose(self) -> ComposeResult:
        c = self.category
        with Vertical(id="div-category-edit"):
            yield Label(f"Edit {c.name}" if c else "New Category", id="label-category-title")
            yield Label("Name")
            yield Input(c.name if c else "", id="input-name")
            yield Label("Description")
            yield Input(c.description if c else "", id="input-description")
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button("Save", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(0)

    @on(Button.Pressed, "#btn-quit")
    def handle_cancel(self) -> None:
        self.dismiss(0)

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        name = self.query_one("#input-name", Input).value
        description = self.query_one("#input-description", Input).value
        try:
            if self.category is None:
                saved = await inventory.create_category(name, description)
            else:
                saved = await inventory.update_category(self.category.id, name, description)
        except ValidationError as e:
            self.query_one("#input-name").focus()
            self.notify(f"Name {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.dismiss(saved.id)
