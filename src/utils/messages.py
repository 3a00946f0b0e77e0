from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired after login (or guest entry), so the screens can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever the cart ledger is mutated: product detail, cart screen, checkout.
    Post at App level when sent from a modal.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when an order is placed.
    Listened to by the account screen and the back office.
    """

    bubble = True

    def __init__(self, order_id: int) -> None:
        super().__init__()
        self.order_id = order_id


class NewQuoteMessage(Message):
    """
    Fired when one or more quote requests were stored
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
