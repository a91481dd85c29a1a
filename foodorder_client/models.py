"""Data models for the food-ordering service."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TWO_PLACES = Decimal("0.01")


def format_amount(value: Union[Decimal, int, float]) -> str:
    """Render an amount with exactly two decimal places."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return str(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def canonical_id(item_id: Union[int, str]) -> str:
    """Menu item identifiers compare equal whether sent as numbers or strings."""
    return str(item_id).strip()


class WireModel(BaseModel):
    """Base for models exchanged with the server as camelCase JSON."""

    model_config = ConfigDict(populate_by_name=True)


class OrderStatus(str, Enum):
    """Lifecycle stages an order moves through on the server."""

    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    READY = "READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class MenuItem(WireModel):
    """Represents a purchasable item from the menu."""

    id: Union[int, str] = Field(description="Menu item ID")
    name: str = Field(description="Item name")
    description: Optional[str] = Field(None, description="Item description")
    price: Decimal = Field(ge=0, description="Unit price")
    category: Optional[str] = Field(None, description="Menu category")

    @property
    def key(self) -> str:
        return canonical_id(self.id)


class CartLine(BaseModel):
    """Represents one distinct menu item in the local cart."""

    menu_item_id: Union[int, str] = Field(description="Menu item ID as served")
    name: str = Field(description="Item name")
    price: Decimal = Field(ge=0, description="Unit price at the time of first add")
    quantity: int = Field(default=1, ge=1, description="Quantity of the item")

    @classmethod
    def from_menu_item(cls, item: MenuItem) -> "CartLine":
        return cls(menu_item_id=item.id, name=item.name, price=item.price)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderItemRequest(WireModel):
    """One (menu item, quantity) pair of an order submission."""

    menu_item_id: Union[int, str] = Field(alias="menuItemId")
    quantity: int = Field(ge=1)


class OrderSubmission(WireModel):
    """Body of ``POST /orders``."""

    customer_name: str = Field(alias="customerName", min_length=1)
    customer_phone: str = Field(alias="customerPhone", min_length=1)
    items: list[OrderItemRequest] = Field(default_factory=list)


class OrderConfirmation(WireModel):
    """Successful response of ``POST /orders``."""

    order_id: str = Field(alias="orderId", description="Server-assigned order ID")
    status: str = Field(description="Initial order status")
    payment_token: Optional[str] = Field(None, alias="paymentToken", description="Token for paying the order")
    total: Optional[Decimal] = Field(None, description="Order total computed by the server")


class OrderLine(WireModel):
    """Represents an item of a placed order."""

    menu_item_id: Union[int, str, None] = Field(None, alias="menuItemId")
    name: str
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderDetails(WireModel):
    """Represents a placed order as returned by ``GET /orders/{id}``."""

    id: str = Field(description="Order ID")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    customer_name: str = Field(alias="customerName")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    items: list[OrderLine] = Field(default_factory=list)
    total_amount: Decimal = Field(alias="totalAmount")
    status: str = Field(description="Current order status")
    delivery_lat: Optional[float] = Field(None, alias="deliveryLat")
    delivery_lng: Optional[float] = Field(None, alias="deliveryLng")
    eta_seconds: Optional[int] = Field(None, alias="etaSeconds")


class DeliveryEstimate(WireModel):
    """Response of ``POST /orders/{id}/track``."""

    eta_seconds: int = Field(alias="etaSeconds", description="Estimated seconds until delivery")
