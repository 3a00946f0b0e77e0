from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils import config
from utils.logger import get_logger
from utils.messages import ModeSwitchedMessage, QuitRequestedMessage, UserLogoutMessage
from utils.state import SessionState
from views.scr_account import AccountScreen
from views.scr_admin_campaigns import AdminCampaignsScreen
from views.scr_admin_categories import AdminCategoriesScreen
from views.scr_admin_customers import AdminCustomersScreen
from views.scr_admin_dashboard import AdminDashboardScreen
from views.scr_admin_inventory import AdminInventoryScreen
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_admin_quotes import AdminQuotesScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen

_logger = get_logger(__name__)


class CoreComponentsApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    STORE_TITLE = config.STORE_NAME

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "account": AccountScreen,
        "dashboard": AdminDashboardScreen,
        "orders": AdminOrdersScreen,
        "quotes": AdminQuotesScreen,
        "inventory": AdminInventoryScreen,
        "categories": AdminCategoriesScreen,
        "customers": AdminCustomersScreen,
        "campaigns": AdminCampaignsScreen,
    }

    SHOPPER_MODES = {"catalog": "Catalog", "cart": "Cart", "account": "My Account"}
    ADMIN_MODES = {
        "dashboard": "Dashboard",
        "orders": "Orders",
        "quotes": "Quotes",
        "inventory": "Inventory",
        "categories": "Categories",
        "customers": "Customers",
        "campaigns": "Campaigns",
    }

    CSS_PATH = "styles/app.tcss"

    state: SessionState

    def __init__(self):
        super().__init__()
        self.state = SessionState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        _logger.info(f"Logout ({self.state.role})")
        self.state.logout()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())
        # a shopper coming back after an admin session (or vice versa) lands on their own home
        target = "dashboard" if self.state.role == "admin" else "catalog"
        self.post_message(ModeSwitchedMessage(self.current_mode, target))
        await self.switch_mode(target)


def main() -> None:
    CoreComponentsApp().run()


if __name__ == "__main__":
    main()
