from datetime import date

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer

import db.crud as crud
from utils.messages import ModeSwitchedMessage, NewOrderMessage, NewQuoteMessage
from utils.pure import fmt_money, fmt_when, generate_markdown_table, humanize
from views.base_screen import BaseScreen


class AdminDashboardScreen(BaseScreen):
    """
    Back office overview: headline counts, order pipeline, last 7 days revenue,
    best sellers, recent quotes and campaigns.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    @on(NewOrderMessage)
    @on(NewQuoteMessage)
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        metrics = await crud.dashboard_metrics(as_of=date.today())
        top_orders = await crud.top_products_by_orders(k=3)
        recent_quotes = await crud.list_quotes(limit=5)
        recent_campaigns = await crud.list_campaigns(limit=5)

        overview = generate_markdown_table(
            ["Metric", "Value"],
            [
                ["Products", metrics["total_products"]],
                ["Customers", metrics["total_customers"]],
                ["Newsletter subscribers", metrics["subscribed_customers"]],
                ["Quote requests (new)", f"{metrics['total_quotes']} ({metrics['new_quotes']})"],
                ["Campaigns", metrics["total_campaigns"]],
            ],
            ["l", "r"],
        )
        pipeline = generate_markdown_table(
            ["Status", "Orders"],
            [[humanize(s), n] for s, n in metrics["orders_by_status"].items()],
            ["l", "r"],
        )
        best = generate_markdown_table(
            ["Product", "Orders"], [[name, cnt] for name, cnt in top_orders], ["l", "r"]
        ) or "_No orders yet._"
        quotes_md = generate_markdown_table(
            ["#", "Date", "Customer", "Product", "Qty", "Status"],
            [
                [
                    q.id,
                    fmt_when(q.created_at),
                    q.customer_name,
                    q.product_name or "Part request",
                    q.quantity,
                    humanize(q.status),
                ]
                for q in recent_quotes
            ],
            ["r", "l", "l", "l", "r", "l"],
        ) or "_No quote requests._"
        campaigns_md = generate_markdown_table(
            ["#", "Name", "Status", "Recipients", "Sent"],
            [
                [c.id, c.name, humanize(c.status), c.recipients, fmt_when(c.sent_at)]
                for c in recent_campaigns
            ],
            ["r", "l", "l", "r", "l"],
        ) or "_No campaigns._"

        md = (
            "### Store Overview\n\n"
            + overview
            + "\n\n### Last 7 Days\n\n"
            + f"- Orders: {metrics['weekly_orders']}\n"
            + f"- Revenue (excluding cancelled): {fmt_money(metrics['weekly_revenue'])}\n\n"
            + "### Orders by Status\n\n"
            + pipeline
            + "\n\n### Best Sellers (by distinct orders)\n\n"
            + best
            + "\n\n### Recent Quote Requests\n\n"
            + quotes_md
            + "\n\n### Recent Campaigns\n\n"
            + campaigns_md
        )
        await self.query_one("#md-dashboard", MarkdownViewer).document.update(md)
