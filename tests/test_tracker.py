import asyncio

import httpx
import pytest

from foodorder_client import (
    CloseReason,
    EventParseError,
    NotificationEvent,
    OrderTracker,
    OrderValidationError,
    SessionState,
    StatusEvent,
    TrackingSession,
    TransportError,
)
from foodorder_client.events import MalformedEvent


def run(coro):
    return asyncio.run(coro)


class TestTrackingSessionEvents:
    def _open_session(self):
        session = TrackingSession("ORD1-1")
        session.state = SessionState.CONNECTING
        return session

    def test_log_is_most_recent_first(self):
        session = self._open_session()

        session.handle_event(StatusEvent(status="PREPARING", timestamp="T1"))
        session.handle_event(NotificationEvent(message="Ready soon"))

        assert session.display_log == ["Ready soon", "Status: PREPARING T1"]
        assert session.current_status == "PREPARING"
        assert session.state is SessionState.OPEN

    def test_entries_are_tagged(self):
        session = self._open_session()

        session.handle_event(StatusEvent(status="READY", timestamp="T2"))
        session.handle_event(NotificationEvent(message="Your order is ready!"))

        assert [e.kind for e in session.entries] == ["notification", "status"]

    def test_status_updates_current_status(self):
        session = self._open_session()

        for status in ["PREPARING", "READY", "OUT_FOR_DELIVERY"]:
            session.handle_event(StatusEvent(status=status, timestamp="T"))

        assert session.current_status == "OUT_FOR_DELIVERY"
        assert len(session.entries) == 3

    def test_notification_does_not_change_status(self):
        session = self._open_session()
        session.handle_event(StatusEvent(status="PREPARING", timestamp="T1"))
        session.handle_event(NotificationEvent(message="hello"))

        assert session.current_status == "PREPARING"

    def test_malformed_status_is_recorded_not_logged(self, caplog):
        session = self._open_session()
        session.handle_event(StatusEvent(status="PREPARING", timestamp="T1"))

        session.handle_event(MalformedEvent(event="status", data="{oops", error="invalid JSON"))

        assert session.display_log == ["Status: PREPARING T1"]
        assert session.current_status == "PREPARING"
        assert len(session.parse_errors) == 1
        assert isinstance(session.parse_errors[0], EventParseError)
        assert session.state is SessionState.OPEN
        assert "dropped event" in caplog.text

    def test_events_after_close_are_ignored(self):
        session = self._open_session()
        session._close(CloseReason.CLIENT_REQUESTED)

        session.handle_event(NotificationEvent(message="late"))

        assert session.display_log == []

    def test_on_update_called_for_visible_changes(self):
        updates = []
        session = TrackingSession("ORD1-1", on_update=lambda s: updates.append(list(s.display_log)))
        session.state = SessionState.CONNECTING

        session.handle_event(NotificationEvent(message="hi"))

        # once for opening, once for the new entry
        assert updates == [[], ["hi"]]


class TestOrderTracker:
    def test_stream_to_server_close(self, make_client, sse_response):
        def handler(request):
            return sse_response(
                [
                    ("init", "RECEIVED"),
                    ("status", {"status": "PREPARING", "timestamp": "T1"}),
                    ("notification", "Ready soon"),
                ]
            )

        async def scenario():
            async with make_client(handler) as client:
                tracker = OrderTracker(client)
                session = await tracker.start_tracking("ORD1-1")
                assert session.state is SessionState.CONNECTING
                await session.wait_closed()
                return session

        session = run(scenario())

        assert session.state is SessionState.CLOSED
        assert session.close_reason is CloseReason.SERVER_CLOSED
        assert session.display_log == ["Connection closed.", "Ready soon", "Status: PREPARING T1"]
        assert session.current_status == "PREPARING"
        assert session.error is None

    def test_init_sets_status_without_log_entry(self, make_client, sse_response):
        async def scenario():
            async with make_client(lambda request: sse_response([("init", "READY")])) as client:
                session = await OrderTracker(client).start_tracking("ORD1-1")
                await session.wait_closed()
                return session

        session = run(scenario())
        assert session.current_status == "READY"
        assert session.display_log == ["Connection closed."]

    def test_malformed_status_does_not_end_session(self, make_client, sse_response):
        def handler(request):
            return sse_response(
                [
                    ("status", "{not json"),
                    ("status", {"status": "READY", "timestamp": "T2"}),
                ]
            )

        async def scenario():
            async with make_client(handler) as client:
                session = await OrderTracker(client).start_tracking("ORD1-1")
                await session.wait_closed()
                return session

        session = run(scenario())
        assert session.display_log == ["Connection closed.", "Status: READY T2"]
        assert len(session.parse_errors) == 1
        assert session.close_reason is CloseReason.SERVER_CLOSED

    def test_transport_error_while_open_then_stop_is_noop(self, make_client, sse_response, wait_until):
        async def scenario():
            handler = lambda request: sse_response(
                [("status", {"status": "PREPARING", "timestamp": "T1"})], then_fail=True
            )
            async with make_client(handler) as client:
                tracker = OrderTracker(client)
                session = await tracker.start_tracking("ORD1-1")
                await session.wait_closed()
                before = (session.state, session.close_reason, list(session.display_log))
                await tracker.stop_tracking(session)
                await tracker.stop_tracking()
                after = (session.state, session.close_reason, list(session.display_log))
                return session, before, after

        session, before, after = run(scenario())

        assert before == after
        assert session.state is SessionState.CLOSED
        assert session.close_reason is CloseReason.TRANSPORT_ERROR
        assert isinstance(session.error, TransportError)
        assert session.display_log == ["Connection closed.", "Status: PREPARING T1"]

    def test_transport_error_while_connecting(self, make_client):
        async def scenario():
            async with make_client(lambda request: httpx.Response(503)) as client:
                session = await OrderTracker(client).start_tracking("ORD1-1")
                await session.wait_closed()
                return session

        session = run(scenario())
        assert session.close_reason is CloseReason.TRANSPORT_ERROR
        assert session.current_status is None
        assert session.display_log == ["Connection closed."]

    def test_stop_tracking_closes_open_stream(self, make_client, sse_response, wait_until):
        async def scenario():
            handler = lambda request: sse_response([("notification", "hello")], then_hang=True)
            async with make_client(handler) as client:
                tracker = OrderTracker(client)
                session = await tracker.start_tracking("ORD1-1")
                await wait_until(lambda: session.display_log == ["hello"])
                assert session.state is SessionState.OPEN

                await tracker.stop_tracking()
                first = (session.state, session.close_reason, list(session.display_log))
                await tracker.stop_tracking()
                second = (session.state, session.close_reason, list(session.display_log))
                return session, first, second

        session, first, second = run(scenario())

        assert first == second == (SessionState.CLOSED, CloseReason.CLIENT_REQUESTED, ["hello"])
        assert session._task.done()

    def test_new_session_closes_previous_one(self, make_client, sse_response, wait_until):
        async def scenario():
            handler = lambda request: sse_response([("notification", request.url.path)], then_hang=True)
            async with make_client(handler) as client:
                async with OrderTracker(client) as tracker:
                    first = await tracker.start_tracking("A")
                    await wait_until(lambda: first.state is SessionState.OPEN)
                    second = await tracker.start_tracking("B")

                    assert first.state is SessionState.CLOSED
                    assert first.close_reason is CloseReason.CLIENT_REQUESTED
                    assert first._task.done()
                    assert tracker.session is second

                    await wait_until(lambda: second.display_log == ["/api/orders/B/events"])
                return first, second

        first, second = run(scenario())
        assert first.display_log == ["/api/orders/A/events"]
        # leaving the tracker context stops the active session
        assert second.close_reason is CloseReason.CLIENT_REQUESTED

    def test_same_order_restart_replaces_session(self, make_client, sse_response, wait_until):
        async def scenario():
            handler = lambda request: sse_response([], then_hang=True)
            async with make_client(handler) as client:
                async with OrderTracker(client) as tracker:
                    first = await tracker.start_tracking("A")
                    await wait_until(lambda: first.state is SessionState.OPEN)
                    second = await tracker.start_tracking("A")
                    return first, second

        first, second = run(scenario())
        assert first is not second
        assert first.is_closed and second.is_closed

    @pytest.mark.parametrize("order_id", ["", "   ", None])
    def test_blank_order_id_rejected(self, make_client, order_id):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        async def scenario():
            async with make_client(handler) as client:
                tracker = OrderTracker(client)
                await tracker.start_tracking(order_id)

        with pytest.raises(OrderValidationError):
            run(scenario())
        assert calls == []

    def test_stop_without_session(self, make_client):
        async def scenario():
            async with make_client(lambda request: httpx.Response(200)) as client:
                tracker = OrderTracker(client)
                await tracker.stop_tracking()
                return tracker.session

        assert run(scenario()) is None

    def test_session_cannot_be_started_twice(self, make_client, sse_response):
        async def scenario():
            async with make_client(lambda request: sse_response([])) as client:
                session = TrackingSession("A")
                session.start(client)
                try:
                    session.start(client)
                finally:
                    await session.stop()

        with pytest.raises(RuntimeError):
            run(scenario())


class TestSessionFailures:
    def test_failing_update_callback_closes_session(self, make_client, sse_response, caplog):
        def on_update(session):
            if session.entries:
                raise ValueError("display broke")

        async def scenario():
            handler = lambda request: sse_response([("notification", "hi")], then_hang=True)
            async with make_client(handler) as client:
                session = await OrderTracker(client, on_update=on_update).start_tracking("ORD1-1")
                await asyncio.wait_for(session.wait_closed(), timeout=2.0)
                return session

        session = run(scenario())

        assert session.state is SessionState.CLOSED
        assert session.close_reason is CloseReason.TRANSPORT_ERROR
        assert isinstance(session.error, TransportError)
        assert "display broke" in str(session.error)
        assert session.display_log == ["Connection closed.", "hi"]
        assert session._task.done() and session._task.exception() is None
        assert "event handling failed" in caplog.text

    def test_non_event_stream_reply_never_opens(self, make_client):
        states = []

        async def scenario():
            async with make_client(lambda request: httpx.Response(200, json={})) as client:
                tracker = OrderTracker(client, on_update=lambda s: states.append(s.state))
                session = await tracker.start_tracking("ORD1-1")
                await session.wait_closed()
                return session

        session = run(scenario())

        assert states == [SessionState.CONNECTING, SessionState.CLOSED]
        assert session.close_reason is CloseReason.TRANSPORT_ERROR

    def test_stop_propagates_cancellation_of_caller(self, make_client, sse_response, wait_until):
        async def scenario():
            handler = lambda request: sse_response([], then_hang=True)
            async with make_client(handler) as client:
                session = await OrderTracker(client).start_tracking("ORD1-1")
                await wait_until(lambda: session.state is SessionState.OPEN)

                stopper = asyncio.get_running_loop().create_task(session.stop())
                await asyncio.sleep(0)
                stopper.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await stopper
                await session.wait_closed()
                return session

        session = run(scenario())
        assert session.close_reason is CloseReason.CLIENT_REQUESTED
        assert session._task.done()
