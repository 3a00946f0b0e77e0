from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    UserLoginMessage,
    UserLogoutMessage,
)
from utils.pure import fmt_money, generate_markdown_table
from views.modal_dialog import ConfirmModal, QuitDialogModal
from views.modal_resize import ResizeScreenPromptModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Signed In As", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        await self.rebuild()

    async def rebuild(self) -> None:
        """Menu and user info follow whoever is signed in now."""
        state = self.app.state
        if not state.role:
            return

        await self.update_userinfo()

        modes = self.app.ADMIN_MODES if state.role == "admin" else self.app.SHOPPER_MODES
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)

    async def update_userinfo(self) -> None:
        state = self.app.state
        if state.customer:
            rows = [
                ["Name", state.customer.name],
                ["Email", state.customer.email],
                ["Role", "Admin" if state.role == "admin" else "Customer"],
            ]
        else:
            rows = [["Name", "Guest"], ["Role", "Visitor"]]
        if state.role != "admin":
            rows.append(["Cart", f"{state.cart.item_count()} item(s), {fmt_money(state.cart.subtotal())}"])
        await self.query_one(Markdown).update(generate_markdown_table(None, rows, ["l", "l"]))

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            ConfirmModal("Are you sure you want to log out?")
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = self.app.STORE_TITLE
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                self.sub_title = {**self.app.ADMIN_MODES, **self.app.SHOPPER_MODES}.get(
                    k, header_sub_title
                )

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 80
        min_height = 24
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    @on(UserLoginMessage)
    def handle_user_login(self):
        self.refresh()

    @on(CartChangedMessage)
    async def handle_cart_badge(self):
        if self._show_sidebar:
            for sidebar in self.query(Sidebar):
                await sidebar.update_userinfo()

    @on(ScreenResume)
    async def handle_resume_sidebar(self):
        if self._show_sidebar:
            for sidebar in self.query(Sidebar):
                await sidebar.rebuild()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
