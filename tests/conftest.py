import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from foodorder_client import ClientSettings, FoodOrderClient, MenuItem

BASE_URL = "http://restaurant.test/api"


@pytest.fixture
def catalog():
    return [
        MenuItem(id=1, name="Tea", description="Masala chai", price=Decimal("10.00")),
        MenuItem(id=2, name="Samosa", description="Two pieces", price=Decimal("15.50")),
        MenuItem(id="3", name="Lassi", description="Sweet", price=Decimal("40.25")),
    ]


@pytest.fixture
def settings():
    return ClientSettings(base_url=BASE_URL, timeout=5.0)


@pytest.fixture
def make_client(settings):
    """Factory for a client whose requests are answered by `handler`."""

    def factory(handler):
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url=BASE_URL + "/",
        )
        return FoodOrderClient(settings, http_client=http_client)

    return factory


def encode_sse(events):
    """Encode (name, data) pairs as a text/event-stream body."""
    chunks = []
    for name, data in events:
        if not isinstance(data, str):
            data = json.dumps(data)
        chunks.append(f"event: {name}\ndata: {data}\n\n")
    return "".join(chunks).encode()


@pytest.fixture
def sse_response():
    """Factory for an event-stream response.

    With `then_hang=True` the stream stays open after the given events;
    with `then_fail=True` it breaks off with a read error.
    """

    def factory(events, then_hang=False, then_fail=False):
        body = encode_sse(events)
        if not then_hang and not then_fail:
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

        async def stream():
            yield body
            if then_fail:
                raise httpx.ReadError("connection reset by peer")
            await asyncio.Event().wait()

        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=stream())

    return factory


async def until(predicate, timeout=2.0):
    """Let the event loop run until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    return until
