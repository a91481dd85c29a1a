"""Events pushed by the server on an order's event stream."""

import json
import logging
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import EventParseError

logger = logging.getLogger(__name__)


class StatusEvent(BaseModel):
    """The order moved to a new lifecycle stage."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(description="Order status name")
    timestamp: str = Field(description="Server timestamp of the change")
    order_id: Optional[str] = Field(None, alias="orderId")

    def describe(self) -> str:
        return f"Status: {self.status} {self.timestamp}"


class NotificationEvent(BaseModel):
    """Free-text message for the customer."""

    message: str


class InitEvent(BaseModel):
    """Status sent once by the server when the stream is opened."""

    status: str


class MalformedEvent(BaseModel):
    """An event whose payload could not be parsed."""

    event: str
    data: str
    error: str

    def to_exception(self) -> EventParseError:
        return EventParseError(f"Malformed {self.event} event: {self.error}")


OrderEvent = Union[StatusEvent, NotificationEvent, InitEvent, MalformedEvent]


def parse_status(data: str) -> StatusEvent:
    """
    Parse the JSON payload of a ``status`` event.

    Raises:
        EventParseError: If the payload is not a JSON object with status and timestamp
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise EventParseError(f"invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise EventParseError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return StatusEvent.model_validate(payload)
    except ValidationError as e:
        raise EventParseError(f"unexpected payload: {e.errors()[0]['msg']}") from e


def parse_event(name: str, data: str) -> Optional[OrderEvent]:
    """
    Turn a named server-sent event into an OrderEvent.

    Args:
        name: Event name (status, notification, init)
        data: Raw event data

    Returns:
        The parsed event, a MalformedEvent for a status payload that fails to
        parse, or None for event names this client does not know
    """
    if name == "status":
        try:
            return parse_status(data)
        except EventParseError as e:
            return MalformedEvent(event=name, data=data, error=str(e))
    if name == "notification":
        return NotificationEvent(message=data)
    if name == "init":
        return InitEvent(status=data.strip())

    logger.debug(f"Ignoring unknown event {name!r}")
    return None
