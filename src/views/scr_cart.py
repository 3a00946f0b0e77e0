from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from shop.cart import CartLine
from utils.messages import CartChangedMessage, ModeSwitchedMessage, NewOrderMessage
from utils.pure import fmt_money
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import ConfirmModal
from views.modal_quote import QuoteModal


class CartItemActionMessage(Message):
    bubble = True

    def __init__(self, action: str) -> None:
        super().__init__()
        self.action = action


class CartItemActionLabel(Label):
    def action_inc(self):
        self.post_message(CartItemActionMessage("inc"))

    def action_dec(self):
        self.post_message(CartItemActionMessage("dec"))

    def action_remove(self):
        self.post_message(CartItemActionMessage("remove"))


class CartItemWidget(HorizontalGroup):
    def __init__(self, line: CartLine):
        super().__init__()
        self.line = line

    def compose(self):
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(f"{self.line.name}  [dim]{self.line.code}[/]", id="label-item-name")
                yield Label(f"x{self.line.quantity}", id="label-item-qty")
                yield Label(
                    f"{fmt_money(self.line.unit_price)} = {fmt_money(self.line.line_total)}",
                    id="label-item-price",
                )
            with Container(id="div-actions"):
                yield CartItemActionLabel("[@click=dec()]-1[/]", id="link-item-dec")
                yield CartItemActionLabel("[@click=inc()]+1[/]", id="link-item-inc")
                yield CartItemActionLabel("[@click=remove()]Remove[/]", id="link-item-remove")

    @on(CartItemActionMessage)
    @work()
    async def handle_action(self, message: CartItemActionMessage):
        cart = self.app.state.cart
        if message.action == "inc":
            cart.update_quantity(self.line.product_id, self.line.quantity + 1)
        elif message.action == "dec":
            # dropping to zero removes the line
            cart.update_quantity(self.line.product_id, self.line.quantity - 1)
        else:
            if not await self.app.push_screen_wait(
                ConfirmModal("Do you really want to remove this item from cart?")
            ):
                return
            cart.remove(self.line.product_id)
            self.notify("Item removed from cart.", severity="information")
        self.post_message(CartChangedMessage())


class CartScreen(BaseScreen):
    """
    Cart lines with quantity edits, totals and the way into checkout.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Subtotal: $0.00", id="label-cart-total")
        yield Label("", id="label-cart-savings")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Request Quote", id="btn-quote")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # avoid mounting duplicate rows
    async def handle_cart_change(self):
        cart = self.app.state.cart
        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartItemWidget(line) for line in cart])

        if cart.is_empty:
            content.add_class("no-items")
        else:
            content.remove_class("no-items")

        self.query_one("#label-cart-total", Label).update(
            f"Subtotal: {fmt_money(cart.subtotal())}  ({cart.item_count()} item(s))"
        )
        savings = cart.savings()
        self.query_one("#label-cart-savings", Label).update(
            f"You save {fmt_money(savings)} with customer pricing" if savings > 0 else ""
        )

    @on(Button.Pressed, "#btn-clear-cart")
    @work
    async def handle_clear_cart(self) -> None:
        if self.app.state.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            ConfirmModal("Do you really want to remove all items from cart?", tone="error")
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-quote")
    @work
    async def handle_quote(self) -> None:
        if self.app.state.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(QuoteModal(mode="cart")):
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work
    async def handle_checkout(self) -> None:
        if self.app.state.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        order_id = await self.app.push_screen_wait(CheckoutModal())
        if order_id:
            self.app.post_message(NewOrderMessage(order_id))
        self.post_message(CartChangedMessage())
