from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, MarkdownViewer

import db.crud
from db.models import Campaign
from shop import campaigns
from shop.analytics import campaign_analytics
from shop.errors import ShopError
from utils.messages import ModeSwitchedMessage
from utils.pure import fmt_when, generate_markdown_table, humanize
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal
from views.modal_new_campaign import NewCampaignModal


class AdminCampaignsScreen(BaseScreen):
    """
    Email campaigns: draft, send to subscribers, and review open/click analytics.
    """

    def __init__(self) -> None:
        super().__init__()
        self._campaigns: List[Campaign] = []
        self._selected: Optional[Campaign] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-campaigns")
            yield MarkdownViewer(id="md-campaign", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Button("New Campaign", id="btn-new", variant="primary")
            yield Button("Send", id="btn-send", variant="warning")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Name", "Subject", "Status", "Recipients", "Sent")

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True, group="campaigns")
    async def handle_reload(self) -> None:
        self._campaigns = await db.crud.list_campaigns()
        table = self.query_one(DataTable)
        table.clear()
        for c in self._campaigns:
            table.add_row(
                c.id, c.name, c.subject, humanize(c.status), c.recipients, fmt_when(c.sent_at)
            )
        if self._campaigns:
            table.cursor_coordinate = (0, 0)
            self._render_analytics(self._campaigns[0])
        else:
            self._selected = None
            await self.query_one(MarkdownViewer).document.update("### No campaigns yet.")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.cursor_row is not None and event.cursor_row < len(self._campaigns):
            self._render_analytics(self._campaigns[event.cursor_row])

    @work(exclusive=True, group="analytics")
    async def _render_analytics(self, campaign: Campaign) -> None:
        self._selected = campaign
        self.query_one("#btn-send", Button).disabled = (
            campaign.status not in campaigns.SENDABLE_STATUSES
        )
        products = await db.crud.get_campaign_products(campaign.id)
        featured = ", ".join(p.name for p in products) or "_none_"
        md = (
            f"### {campaign.name}  ({humanize(campaign.status)})\n\n"
            f"Subject: {campaign.subject}  \n"
            f"Headline: {campaign.headline or '-'}  \n"
            f"Created: {fmt_when(campaign.created_at)}  \n"
            f"Featured: {featured}\n\n"
        )
        if campaign.status != "sent":
            await self.query_one(MarkdownViewer).document.update(md + "_Not sent yet._")
            return

        stats = await campaign_analytics(campaign.id)
        md += generate_markdown_table(
            ["Metric", "Value"],
            [
                ["Recipients", stats.recipients],
                ["Opens (unique)", f"{stats.total_opens} ({stats.unique_opens})"],
                ["Clicks (unique)", f"{stats.total_clicks} ({stats.unique_clicks})"],
                ["Open rate", f"{stats.open_rate:.1f}%"],
                ["Click rate", f"{stats.click_rate:.1f}%"],
                ["Click-through rate", f"{stats.click_through_rate:.1f}%"],
            ],
            ["l", "r"],
        )
        top = generate_markdown_table(
            ["Product", "Clicks", "Share"],
            [[p.name, p.clicks, f"{p.share:.1f}%"] for p in stats.top_products],
            ["l", "r", "r"],
        )
        md += "\n\n### Top Products\n\n" + (top or "_No clicks yet._")
        await self.query_one(MarkdownViewer).document.update(md)

    @on(Button.Pressed, "#btn-new")
    @work
    async def handle_new(self) -> None:
        if await self.app.push_screen_wait(NewCampaignModal()):
            self.handle_reload()

    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True)
    async def handle_send(self) -> None:
        if self._selected is None:
            return
        campaign = self._selected
        subscribers = await db.crud.list_subscribed_customers()
        if not await self.app.push_screen_wait(
            ConfirmModal(
                f"Send '{campaign.name}' to {len(subscribers)} subscriber(s)?",
                confirm_text="Send",
                cancel_text="Cancel",
            )
        ):
            return

        self.notify(f"Sending '{campaign.name}'...")
        try:
            report = await campaigns.send_campaign(campaign.id)
        except ShopError as e:
            self.notify(f"Send failed: {e}", severity="error")
            return

        if report.sent == 0:
            self.notify(f"All {report.failed} send(s) failed.", severity="error", timeout=10)
        elif report.failed:
            failed = ", ".join(r.recipient for r in report.failures)
            self.notify(
                f"Sent to {report.sent}; {report.failed} failed: {failed}",
                severity="warning",
                timeout=10,
            )
        else:
            self.notify(f"Sent to {report.sent} subscriber(s).")
        self.handle_reload()
