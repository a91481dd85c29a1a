"""Errors raised by the food-ordering client."""

from typing import Optional


class FoodOrderError(Exception):
    """Base class for all client errors."""


class ItemNotFoundError(FoodOrderError, LookupError):
    """A cart operation referenced an item missing from the menu."""

    def __init__(self, item_id) -> None:
        super().__init__(f"Menu item not found: {item_id}")
        self.item_id = item_id


class OrderValidationError(FoodOrderError, ValueError):
    """Required checkout input is missing; raised before any request is made."""


class ApiError(FoodOrderError):
    """The server answered with a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SubmissionError(ApiError):
    """An order could not be placed."""


class PaymentError(ApiError):
    """A payment capture was rejected."""


class OrderNotFoundError(ApiError):
    """The server does not know the requested order."""


class TransportError(FoodOrderError):
    """The order event stream could not be opened or broke off."""


class EventParseError(FoodOrderError, ValueError):
    """A pushed event carried a payload that could not be parsed."""
