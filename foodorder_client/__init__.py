"""Client for a food-ordering service: local cart, checkout and live order tracking."""

from .cart import Cart
from .client import FoodOrderClient
from .config import ClientSettings
from .events import InitEvent, MalformedEvent, NotificationEvent, OrderEvent, StatusEvent
from .exceptions import (
    ApiError,
    EventParseError,
    FoodOrderError,
    ItemNotFoundError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentError,
    SubmissionError,
    TransportError,
)
from .models import CartLine, MenuItem, OrderConfirmation, OrderDetails, OrderStatus, format_amount
from .tracker import CloseReason, OrderTracker, SessionState, TrackingSession

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "Cart",
    "CartLine",
    "ClientSettings",
    "CloseReason",
    "EventParseError",
    "FoodOrderClient",
    "FoodOrderError",
    "InitEvent",
    "ItemNotFoundError",
    "MalformedEvent",
    "MenuItem",
    "NotificationEvent",
    "OrderConfirmation",
    "OrderDetails",
    "OrderEvent",
    "OrderNotFoundError",
    "OrderStatus",
    "OrderTracker",
    "OrderValidationError",
    "PaymentError",
    "SessionState",
    "StatusEvent",
    "SubmissionError",
    "TrackingSession",
    "TransportError",
    "format_amount",
]
