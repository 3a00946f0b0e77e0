from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, SelectionList

from db.crud import search_products
from shop import campaigns
from shop.errors import ShopError, ValidationError
from utils.pure import fmt_money


class NewCampaignModal(ModalScreen[int]):
    """Draft a campaign. Dismisses with the new campaign id, or 0."""

    def compose(self) -> ComposeResult:
        with Vertical(id="div-new-campaign"):
            yield Label("New Campaign", id="label-campaign-title")
            yield Input(placeholder="Internal name", id="input-name")
            yield Input(placeholder="Email subject", id="input-subject")
            yield Input(placeholder="Headline (optional)", id="input-headline")
            yield Label("Featured products:")
            yield SelectionList[int](id="sel-products")
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button("Save Draft", id="btn-save", variant="primary")

    async def on_mount(self) -> None:
        products, _ = await search_products(page_size=200)
        self.query_one(SelectionList).add_options(
            [(f"{p.name} ({p.code})  {fmt_money(p.retail_price)}", p.id) for p in products]
        )
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
        try:
            campaign = await campaigns.create_campaign(
                self.query_one("#input-name", Input).value,
                self.query_one("#input-subject", Input).value,
                self.query_one("#input-headline", Input).value,
                self.query_one(SelectionList).selected,
            )
        except ValidationError as e:
            for inp in self.query(f"#input-{e.field}"):
                inp.focus()
            self.notify(f"{e.field.replace('_', ' ').capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.dismiss(campaign.id)
