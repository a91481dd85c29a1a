"""Local shopping cart."""

import logging
from decimal import Decimal
from typing import Iterable, Union

from .exceptions import ItemNotFoundError
from .models import CartLine, MenuItem, OrderItemRequest, canonical_id

logger = logging.getLogger(__name__)


class Cart:
    """
    Quantities of selected menu items, kept until an order is placed.

    Lines are keyed by the canonical (string) form of the menu item ID and
    keep the order in which items were first added.
    """

    def __init__(self) -> None:
        self._lines: dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def add_item(self, catalog: Iterable[MenuItem], item_id: Union[int, str]) -> CartLine:
        """
        Add one unit of a menu item to the cart.

        Args:
            catalog: Current menu snapshot
            item_id: ID of the item to add (numbers and strings match alike)

        Returns:
            The cart line holding the item

        Raises:
            ItemNotFoundError: If the item is not on the menu; the cart is left untouched
        """
        key = canonical_id(item_id)
        item = next((m for m in catalog if m.key == key), None)
        if item is None:
            logger.debug(f"Item {item_id!r} not in catalog, cart unchanged")
            raise ItemNotFoundError(item_id)

        line = self._lines.get(key)
        if line is None:
            line = CartLine.from_menu_item(item)
            self._lines[key] = line
        else:
            line.quantity += 1
        logger.debug(f"Cart: {line.name} x {line.quantity}")
        return line

    def total(self) -> Decimal:
        """Sum of price times quantity over all lines."""
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def item_count(self) -> int:
        """Total number of units in the cart."""
        return sum(line.quantity for line in self._lines.values())

    def snapshot(self) -> list[CartLine]:
        """Copies of the cart lines in first-add order, for display."""
        return [line.model_copy() for line in self._lines.values()]

    def to_order_items(self) -> list[OrderItemRequest]:
        """One order item per cart line, in snapshot order."""
        return [
            OrderItemRequest(menu_item_id=line.menu_item_id, quantity=line.quantity)
            for line in self._lines.values()
        ]

    def clear(self) -> None:
        """Empty the cart. Call only once an order has been confirmed."""
        self._lines = {}
