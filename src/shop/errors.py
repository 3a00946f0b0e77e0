# error taxonomy shared by the shop kernel, views and the web layer


class ShopError(Exception):
    """Base class for every error the store reports to a caller."""


class ValidationError(ShopError, ValueError):
    """Input rejected before anything was written."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class PersistenceError(ShopError):
    """The database refused a write or could not be reached.

    The underlying aiosqlite / sqlite3 error is kept as ``__cause__``.
    """


class NotFoundError(ShopError):
    def __init__(self, entity: str, key):
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key
