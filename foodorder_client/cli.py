"""Command-line interface for the food-ordering client."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .cart import Cart
from .client import FoodOrderClient
from .config import ClientSettings
from .exceptions import FoodOrderError
from .models import MenuItem, format_amount
from .tracker import OrderTracker, TrackingSession

logger = logging.getLogger(__name__)


def parse_item_spec(spec: str) -> tuple[str, int]:
    """
    Parse an ``--item`` value of the form ``ID`` or ``IDxQTY``.

    Raises:
        argparse.ArgumentTypeError: If the quantity is not a positive integer
    """
    item_id, sep, qty = spec.strip().rpartition("x")
    if not sep or not item_id or not qty.isdigit():
        return spec.strip(), 1
    quantity = int(qty)
    if quantity < 1:
        raise argparse.ArgumentTypeError(f"Quantity must be at least 1: {spec}")
    return item_id, quantity


def render_menu(items: list[MenuItem], symbol: str) -> list[str]:
    lines = []
    for item in items:
        lines.append(f"[{item.id}] {item.name} - {symbol}{format_amount(item.price)}")
        if item.description:
            lines.append(f"    {item.description}")
    return lines


def render_cart(cart: Cart, symbol: str) -> list[str]:
    lines = [
        f"{line.name} x {line.quantity}  {symbol}{format_amount(line.line_total)}"
        for line in cart.snapshot()
    ]
    lines.append(f"Total: {symbol}{format_amount(cart.total())}")
    return lines


class LogPrinter:
    """Prints tracking log entries as they are added."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout
        self._printed = 0

    def __call__(self, session: TrackingSession) -> None:
        new = len(session.entries) - self._printed
        # entries are most-recent-first, print the new ones oldest first
        for entry in reversed(session.entries[:new]):
            prefix = "* " if entry.kind == "notification" else ""
            print(f"{prefix}{entry.text}", file=self.stream)
        self._printed = len(session.entries)


async def track(client: FoodOrderClient, order_id: str) -> TrackingSession:
    """Follow an order until the server closes the stream or the user interrupts."""
    printer = LogPrinter()
    async with OrderTracker(client, on_update=printer) as tracker:
        session = await tracker.start_tracking(order_id)
        print("Connecting...")
        try:
            await session.wait_closed()
        except asyncio.CancelledError:
            await tracker.stop_tracking(session)
            raise
    return session


async def run(args: argparse.Namespace, settings: ClientSettings) -> int:
    symbol = settings.currency_symbol
    async with FoodOrderClient(settings) as client:
        if args.command == "menu":
            for line in render_menu(await client.fetch_menu(args.category), symbol):
                print(line)

        elif args.command == "order":
            catalog = await client.fetch_menu()
            cart = Cart()
            for item_id, quantity in args.items:
                for _ in range(quantity):
                    cart.add_item(catalog, item_id)
            for line in render_cart(cart, symbol):
                print(line)
            confirmation = await client.submit_order(args.name, args.phone, cart)
            cart.clear()
            print(
                f"Order placed: {confirmation.order_id} (status: {confirmation.status}). "
                f"PaymentToken: {confirmation.payment_token}"
            )
            if args.track:
                await track(client, confirmation.order_id)

        elif args.command == "status":
            order = await client.get_order(args.order_id)
            print(f"Order {order.id} for {order.customer_name}: {order.status}")
            for line in order.items:
                print(f"  {line.name} x {line.quantity}  {symbol}{format_amount(line.subtotal)}")
            print(f"Total: {symbol}{format_amount(order.total_amount)}")
            if order.eta_seconds is not None:
                print(f"ETA: {order.eta_seconds}s")

        elif args.command == "pay":
            status = await client.pay_order(args.order_id, args.token)
            print(f"Order {args.order_id}: {status}")

        elif args.command == "locate":
            estimate = await client.set_delivery_location(args.order_id, args.lat, args.lng)
            print(f"Order {args.order_id} ETA: {estimate.eta_seconds}s")

        elif args.command == "track":
            session = await track(client, args.order_id)
            if session.current_status:
                print(f"Last status: {session.current_status}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foodorder",
        description="Food ordering client - browse the menu, place and track orders",
    )
    parser.add_argument("--base-url", help="API root URL (default: $FOODORDER_API_BASE or http://localhost:8080/api)")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 30)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    menu = sub.add_parser("menu", help="Show the menu")
    menu.add_argument("--category", help="Only show this category")

    order = sub.add_parser("order", help="Place an order")
    order.add_argument("--name", required=True, help="Customer name")
    order.add_argument("--phone", required=True, help="Customer phone")
    order.add_argument(
        "--item",
        dest="items",
        action="append",
        type=parse_item_spec,
        required=True,
        metavar="ID[xQTY]",
        help="Menu item to order, repeatable (e.g. 3 or 3x2)",
    )
    order.add_argument("--track", action="store_true", help="Follow the order after placing it")

    status = sub.add_parser("status", help="Show a placed order")
    status.add_argument("order_id")

    pay = sub.add_parser("pay", help="Pay for an order")
    pay.add_argument("order_id")
    pay.add_argument("token", help="Payment token returned when the order was placed")

    locate = sub.add_parser("locate", help="Set the delivery location of an order")
    locate.add_argument("order_id")
    locate.add_argument("lat", type=float)
    locate.add_argument("lng", type=float)

    track_cmd = sub.add_parser("track", help="Follow the status of an order")
    track_cmd.add_argument("order_id")

    return parser


def build_settings(args: argparse.Namespace, environ: Optional[dict[str, str]] = None) -> ClientSettings:
    """
    Environment settings with command-line overrides applied.

    Raises:
        ValueError: If a value is invalid (e.g. a non-positive timeout)
    """
    settings = ClientSettings.from_env(environ)
    updates = {}
    if args.base_url is not None:
        updates["base_url"] = args.base_url
    if args.timeout is not None:
        updates["timeout"] = args.timeout
    return ClientSettings(**{**settings.model_dump(), **updates})


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("foodorder_client").setLevel(logging.DEBUG if verbose else logging.INFO)
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = build_settings(args)
    except ValueError as e:
        parser.error(str(e))
    logger.debug(f"Using API at {settings.base_url} (timeout={settings.timeout}s)")

    try:
        return asyncio.run(run(args, settings))
    except FoodOrderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
