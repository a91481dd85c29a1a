"""Food-ordering API client."""

import logging
from decimal import Decimal
from typing import Any, AsyncIterator, Callable, Optional
from urllib.parse import quote

import httpx
from httpx_sse import SSEError, aconnect_sse

from .cart import Cart
from .config import ClientSettings
from .events import OrderEvent, parse_event
from .exceptions import (
    ApiError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentError,
    SubmissionError,
    TransportError,
)
from .models import DeliveryEstimate, MenuItem, OrderConfirmation, OrderDetails, OrderSubmission

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"


def _decode(response: httpx.Response) -> Any:
    """Decode a JSON body, keeping prices exact."""
    return response.json(parse_float=Decimal)


def _error_message(response: httpx.Response) -> str:
    """Server-supplied error message of a failed response, or a generic one."""
    try:
        data = _decode(response)
    except ValueError:
        return UNKNOWN_ERROR
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return UNKNOWN_ERROR


class FoodOrderClient:
    """Client for the food-ordering REST API and its order event stream."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Connection settings (default: read from the environment)
            http_client: Pre-built HTTP client to use instead of creating one
        """
        self.settings = settings or ClientSettings.from_env()
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            base_url=self.settings.base_url.rstrip("/") + "/",
            timeout=self.settings.timeout,
            follow_redirects=True,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "FoodOrderClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    @staticmethod
    def _order_path(order_id: str) -> str:
        return f"orders/{quote(str(order_id), safe='')}"

    async def fetch_menu(self, category: Optional[str] = None) -> list[MenuItem]:
        """
        Fetch the menu.

        Args:
            category: Only return items of this category

        Returns:
            Menu items as served
        """
        params = {"category": category} if category else None
        logger.info(f"Fetching menu (category={category})")
        response = await self.client.get("menu", params=params)
        if not response.is_success:
            raise ApiError(_error_message(response), response.status_code)
        items = [MenuItem.model_validate(item) for item in _decode(response)]
        logger.info(f"Menu has {len(items)} items")
        return items

    async def submit_order(self, customer_name: str, customer_phone: str, cart: Cart) -> OrderConfirmation:
        """
        Place an order for the current cart contents.

        The cart is never modified here; clear it once the order is confirmed.

        Args:
            customer_name: Customer name, surrounding whitespace is ignored
            customer_phone: Customer phone number, surrounding whitespace is ignored
            cart: Cart to order

        Returns:
            Order ID, status and payment token as returned by the server

        Raises:
            OrderValidationError: If name or phone is blank (no request is made)
            SubmissionError: If the server rejects the order or cannot be reached
        """
        name = (customer_name or "").strip()
        phone = (customer_phone or "").strip()
        if not name or not phone:
            raise OrderValidationError("Enter name and phone")

        submission = OrderSubmission(customer_name=name, customer_phone=phone, items=cart.to_order_items())
        logger.info(f"Submitting order: {len(submission.items)} lines, {cart.item_count()} units")
        try:
            response = await self.client.post(
                "orders",
                json=submission.model_dump(mode="json", by_alias=True),
            )
        except httpx.HTTPError as e:
            logger.error(f"Order submission failed: {e}")
            raise SubmissionError(str(e) or UNKNOWN_ERROR) from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning(f"Order rejected: status={response.status_code}, error={message}")
            raise SubmissionError(message, response.status_code)

        try:
            confirmation = OrderConfirmation.model_validate(_decode(response))
        except ValueError as e:
            raise SubmissionError(f"Unexpected order response: {e}", response.status_code) from e
        logger.info(f"Order placed: {confirmation.order_id} (status: {confirmation.status})")
        return confirmation

    async def get_order(self, order_id: str) -> OrderDetails:
        """
        Get a placed order.

        Raises:
            OrderNotFoundError: If the server does not know the order
            ApiError: For any other failed response
        """
        response = await self.client.get(self._order_path(order_id))
        if response.status_code == 404:
            raise OrderNotFoundError(f"Order not found: {order_id}", 404)
        if not response.is_success:
            raise ApiError(_error_message(response), response.status_code)
        return OrderDetails.model_validate(_decode(response))

    async def pay_order(self, order_id: str, payment_token: str) -> str:
        """
        Capture payment for an order.

        Args:
            order_id: Order to pay
            payment_token: Token returned when the order was placed

        Returns:
            The payment status reported by the server ("PAID")

        Raises:
            OrderNotFoundError: If the server does not know the order
            PaymentError: If the payment was rejected
            ApiError: If the server accepted the payment with an unreadable body
        """
        logger.info(f"Paying order {order_id}")
        response = await self.client.post(
            f"{self._order_path(order_id)}/pay",
            json={"paymentToken": payment_token or ""},
        )
        if response.status_code == 404:
            raise OrderNotFoundError(f"Order not found: {order_id}", 404)
        if not response.is_success:
            message = _error_message(response)
            logger.warning(f"Payment for {order_id} rejected: {message}")
            raise PaymentError(message, response.status_code)
        try:
            data = _decode(response)
        except ValueError as e:
            raise ApiError(f"Unexpected payment response: {e}", response.status_code) from e
        if not isinstance(data, dict):
            raise ApiError("Unexpected payment response", response.status_code)
        return str(data.get("status", "PAID"))

    async def set_delivery_location(self, order_id: str, lat: float, lng: float) -> DeliveryEstimate:
        """
        Send the delivery coordinates of an order and get the delivery estimate.

        Raises:
            OrderNotFoundError: If the server does not know the order
            ApiError: If the coordinates are rejected
        """
        response = await self.client.post(
            f"{self._order_path(order_id)}/track",
            json={"lat": lat, "lng": lng},
        )
        if response.status_code == 404:
            raise OrderNotFoundError(f"Order not found: {order_id}", 404)
        if not response.is_success:
            raise ApiError(_error_message(response), response.status_code)
        estimate = DeliveryEstimate.model_validate(_decode(response))
        logger.info(f"Order {order_id} ETA: {estimate.eta_seconds}s")
        return estimate

    async def stream_order_events(
        self,
        order_id: str,
        on_open: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[OrderEvent]:
        """
        Yield the events pushed for an order, in arrival order.

        The stream has no read timeout; it ends when the server closes it.

        Args:
            order_id: Order to follow
            on_open: Called once the server has accepted the stream

        Yields:
            Parsed events; unknown event names are skipped

        Raises:
            TransportError: If the stream cannot be opened or breaks off
        """
        path = f"{self._order_path(order_id)}/events"
        timeout = httpx.Timeout(self.settings.timeout, read=None)
        try:
            async with aconnect_sse(self.client, "GET", path, timeout=timeout) as event_source:
                response = event_source.response
                if not response.is_success:
                    raise TransportError(f"Event stream for {order_id} refused: HTTP {response.status_code}")
                content_type = response.headers.get("content-type", "")
                if "text/event-stream" not in content_type:
                    raise TransportError(f"Event stream for {order_id} refused: unexpected content type {content_type!r}")
                logger.info(f"Event stream for {order_id} open")
                if on_open is not None:
                    on_open()
                async for sse in event_source.aiter_sse():
                    event = parse_event(sse.event, sse.data)
                    if event is not None:
                        yield event
        except (httpx.HTTPError, SSEError) as e:
            raise TransportError(f"Event stream for {order_id} failed: {e}") from e
        logger.info(f"Event stream for {order_id} closed by server")
