"""Exceptions raised by the quote store."""


class QuoteNotFoundError(KeyError):
    """No quote with the given id exists in the store."""

    def __init__(self, quote_id: str) -> None:
        super().__init__(quote_id)
        self.quote_id = quote_id

    def __str__(self) -> str:
        return f"Quote not found: {self.quote_id}"


class InvalidTransitionError(ValueError):
    """The requested status change is not allowed from the quote's current status."""

    def __init__(self, quote_id: str, current: str, target: str) -> None:
        super().__init__(f"Quote {quote_id} cannot move from '{current}' to '{target}'")
        self.quote_id = quote_id
        self.current = current
        self.target = target


class InvalidFieldValueError(ValueError):
    """A correction value cannot be accepted for the targeted field."""
