"""Live tracking of a placed order over its event stream."""

import asyncio
import logging
from contextlib import aclosing
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from .client import FoodOrderClient
from .events import InitEvent, MalformedEvent, NotificationEvent, OrderEvent, StatusEvent
from .exceptions import EventParseError, OrderValidationError, TransportError

logger = logging.getLogger(__name__)

CONNECTION_CLOSED = "Connection closed."


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(str, Enum):
    CLIENT_REQUESTED = "client_requested"
    SERVER_CLOSED = "server_closed"
    TRANSPORT_ERROR = "transport_error"


class LogEntry(BaseModel):
    """One line of the tracking display log."""

    kind: str  # status, notification or closed
    text: str


UpdateCallback = Callable[["TrackingSession"], None]


class TrackingSession:
    """
    Subscription to the events of a single order.

    The session moves IDLE -> CONNECTING -> OPEN -> CLOSED and never leaves
    CLOSED; follow the order again by starting a new session. The display log
    is kept most-recent-first.
    """

    def __init__(self, order_id: str, on_update: Optional[UpdateCallback] = None) -> None:
        self.order_id = order_id
        self.state = SessionState.IDLE
        self.close_reason: Optional[CloseReason] = None
        self.current_status: Optional[str] = None
        self.entries: list[LogEntry] = []
        self.parse_errors: list[EventParseError] = []
        self.error: Optional[TransportError] = None
        self._on_update = on_update
        self._task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<TrackingSession order={self.order_id} state={self.state.value}>"

    @property
    def display_log(self) -> list[str]:
        return [entry.text for entry in self.entries]

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self)

    def _prepend(self, kind: str, text: str) -> None:
        self.entries.insert(0, LogEntry(kind=kind, text=text))

    def _mark_open(self) -> None:
        if self.state is SessionState.CONNECTING:
            self.state = SessionState.OPEN
            logger.info(f"Tracking {self.order_id}: open")
            self._notify()

    def _close(self, reason: CloseReason, notify: bool = True) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.close_reason = reason
        if reason is not CloseReason.CLIENT_REQUESTED:
            self._prepend("closed", CONNECTION_CLOSED)
        logger.info(f"Tracking {self.order_id}: closed ({reason.value})")
        if notify:
            self._notify()

    def handle_event(self, event: OrderEvent) -> None:
        """Apply one pushed event to the session."""
        if self.state is SessionState.CLOSED:
            return
        self._mark_open()

        if isinstance(event, StatusEvent):
            self.current_status = event.status
            self._prepend("status", event.describe())
        elif isinstance(event, NotificationEvent):
            self._prepend("notification", event.message)
        elif isinstance(event, InitEvent):
            self.current_status = event.status
        elif isinstance(event, MalformedEvent):
            error = event.to_exception()
            logger.warning(f"Tracking {self.order_id}: dropped event: {error} (data={event.data!r})")
            self.parse_errors.append(error)
            return
        else:
            return
        self._notify()

    async def _consume(self, client: FoodOrderClient) -> None:
        try:
            stream = client.stream_order_events(self.order_id, on_open=self._mark_open)
            async with aclosing(stream) as events:
                async for event in events:
                    self.handle_event(event)
        except TransportError as e:
            logger.error(f"Tracking {self.order_id}: {e}")
            self.error = e
            self._close(CloseReason.TRANSPORT_ERROR)
        except Exception as e:
            logger.error(f"Tracking {self.order_id}: event handling failed: {e}", exc_info=True)
            self.error = TransportError(f"Tracking {self.order_id} aborted: {e}")
            # the update callback may be what failed
            self._close(CloseReason.TRANSPORT_ERROR, notify=False)
        else:
            self._close(CloseReason.SERVER_CLOSED)

    def start(self, client: FoodOrderClient) -> None:
        """Open the stream and consume it in a background task."""
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session for {self.order_id} was already started")
        self.state = SessionState.CONNECTING
        logger.info(f"Tracking {self.order_id}: connecting")
        self._notify()
        self._task = asyncio.get_running_loop().create_task(self._consume(client))

    async def stop(self) -> None:
        """Close the stream. Does nothing if the session is already closed."""
        task = self._task
        self._close(CloseReason.CLIENT_REQUESTED)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def wait_closed(self) -> None:
        """Wait until the stream ends or the session is stopped."""
        if self._task is not None and not self._task.done():
            await asyncio.wait({self._task})


class OrderTracker:
    """Owns at most one tracking session at a time."""

    def __init__(self, client: FoodOrderClient, on_update: Optional[UpdateCallback] = None) -> None:
        self.client = client
        self.on_update = on_update
        self._session: Optional[TrackingSession] = None

    @property
    def session(self) -> Optional[TrackingSession]:
        return self._session

    async def __aenter__(self) -> "OrderTracker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop_tracking()

    async def start_tracking(self, order_id: str) -> TrackingSession:
        """
        Start following an order, closing any session that is still running.

        Args:
            order_id: Order to follow

        Returns:
            The new session, in CONNECTING state

        Raises:
            OrderValidationError: If order_id is blank
        """
        order_id = (order_id or "").strip()
        if not order_id:
            raise OrderValidationError("Enter order id")

        await self.stop_tracking()
        session = TrackingSession(order_id, on_update=self.on_update)
        self._session = session
        session.start(self.client)
        return session

    async def stop_tracking(self, session: Optional[TrackingSession] = None) -> None:
        """
        Close a session (default: the current one). Safe to call repeatedly.
        """
        session = session or self._session
        if session is None:
            return
        await session.stop()
