from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from shop import accounts
from shop.errors import ShopError, ValidationError
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal, SimpleDialogModal


class LoginScreen(BaseScreen):
    """
    Sign in, create an account, or browse as a guest.
    Dismisses once app.state has a role.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Welcome", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="you@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-login-pwd")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Continue as Guest", id="btn-guest")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Phone (optional)")
                    yield Input(placeholder="416-555-0100", id="input-reg-phone")
                    yield Label("Company (optional)")
                    yield Input(placeholder="Acme Haulage", id="input-reg-company")
                    yield Label("Password (6+ characters)")
                    yield Input(placeholder="*********", password=True, id="input-reg-pwd")
                    with Container(id="div-reg-btns"):
                        yield Button("Create Account", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        if await self.app.state.login(email, pwd):
            self.notify(f"Welcome back, {self.app.state.customer.name}!")
            self.app.post_message(UserLoginMessage())
            self.dismiss()
        else:
            self.notify("Invalid email or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")

    @on(Button.Pressed, "#btn-guest")
    def handle_guest(self) -> None:
        self.app.state.continue_as_guest()
        self.notify("Browsing as a guest. Sign in to see customer pricing.")
        self.app.post_message(UserLoginMessage())
        self.dismiss()

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        values = {
            key: self.query_one(f"#input-reg-{key}", Input).value
            for key in ("name", "email", "phone", "company", "pwd")
        }
        for inp in self.query("#div-reg Input"):
            inp.remove_class("-invalid")

        try:
            customer = await accounts.signup(
                values["name"],
                values["email"],
                values["pwd"],
                phone=values["phone"],
                company=values["company"],
            )
        except ValidationError as e:
            target = {"password": "pwd"}.get(e.field, e.field)
            for inp in self.query(f"#input-reg-{target}"):
                inp.add_class("-invalid")
                inp.focus()
            self.notify(f"{e.field.capitalize()} {e.message}.", severity="error")
            return
        except ShopError as e:
            self.notify(str(e), severity="error")
            return

        await self.app.push_screen_wait(
            SimpleDialogModal(f"Account created for {customer.email}.", tone="positive")
        )

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = customer.email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = values["pwd"]
        input_login_pwd.focus()

        self.notify("Registration successful.")

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
