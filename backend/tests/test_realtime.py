"""
Tests for the real-time hub and WebSocket message handling.

Tests: room membership, emission and dead-socket cleanup, stats,
token authentication, client subscribe/unsubscribe/ping.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from middleware.auth import issue_access_token
from routes.realtime import _authenticate, _handle_client_message
from services import realtime_service
from services.realtime_service import ConnectionManager
from tests.conftest import FakeWebSocket


@pytest.fixture
def manager(monkeypatch):
    """Fresh hub patched in for the module-level emit helpers."""
    hub = ConnectionManager()
    monkeypatch.setattr(realtime_service, "hub", hub)
    return hub


class TestConnectionManager:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connect_joins_default_rooms(self, manager):
        ws = FakeWebSocket()
        conn = await manager.connect(ws, "u1", "vendor")
        assert ws.accepted is True
        assert conn.rooms == {"user:u1", "role:vendor", "all"}
        assert manager.active_connections == 1

        manager.disconnect(ws)
        assert manager.active_connections == 0
        assert manager.room_size("user:u1") == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_emit_envelope(self, manager):
        ws = FakeWebSocket()
        await manager.connect(ws, "u1", "customer")
        sent = await manager.emit("user:u1", "order_status_updated", {"orderId": "o1"})
        assert sent == 1
        message = ws.sent[0]
        assert message["event"] == "order_status_updated"
        assert message["data"] == {"orderId": "o1"}
        assert "timestamp" in message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_emit_to_empty_room(self, manager):
        assert await manager.emit("order:none", "order_status_updated", {}) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self, manager):
        good, bad = FakeWebSocket(), FakeWebSocket(fail=True)
        await manager.connect(good, "u1", "customer")
        await manager.connect(bad, "u2", "customer")
        assert await manager.emit("role:customer", "admin_broadcast", {"m": 1}) == 1
        assert manager.active_connections == 1
        assert manager.room_size("role:customer") == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_and_leave(self, manager):
        ws = FakeWebSocket()
        await manager.connect(ws, "u1", "customer")
        manager.join(ws, "order:o1")
        assert manager.room_size("order:o1") == 1
        manager.leave(ws, "order:o1")
        assert manager.room_size("order:o1") == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_ignores_unknown_socket(self, manager):
        manager.join(FakeWebSocket(), "order:o1")
        assert manager.room_size("order:o1") == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stats(self, manager):
        ws = FakeWebSocket()
        await manager.connect(ws, "u1", "customer")
        await manager.emit("all", "admin_broadcast", {})
        manager.disconnect(ws)
        assert manager.get_stats() == {
            "activeConnections": 0,
            "rooms": 0,
            "totalConnections": 1,
            "totalMessagesSent": 1,
        }


class TestEmitHelpers:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_role_and_broadcast(self, manager):
        driver_ws, customer_ws = FakeWebSocket(), FakeWebSocket()
        await manager.connect(driver_ws, "d1", "driver")
        await manager.connect(customer_ws, "c1", "customer")

        assert await realtime_service.emit_to_role("driver", "order_status_updated", {}) == 1
        assert await realtime_service.broadcast("admin_broadcast", {"message": "hi"}) == 2
        assert await realtime_service.emit_to_user("c1", "payment_updated", {}) == 1
        assert customer_ws.events() == ["admin_broadcast", "payment_updated"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_emit_safely_swallows_errors(self, manager, monkeypatch):
        async def boom(*args):
            raise RuntimeError("hub exploded")

        monkeypatch.setattr(manager, "emit", boom)
        assert await realtime_service.emit_safely("all", "admin_broadcast", {}) == 0


class TestSocketAuth:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_valid_token(self, db_session, customer_user):
        token = issue_access_token(user_id=customer_user.id, role=customer_user.role)
        user = await _authenticate(db_session, token)
        assert user.id == customer_user.id

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_or_bad_token(self, db_session):
        assert await _authenticate(db_session, None) is None
        assert await _authenticate(db_session, "not-a-jwt") is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, db_session, customer_user):
        customer_user.status = "suspended"
        await db_session.commit()
        token = issue_access_token(user_id=customer_user.id, role=customer_user.role)
        assert await _authenticate(db_session, token) is None


class TestClientMessages:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_ping(self, db_session, customer_user):
        ws = FakeWebSocket()
        await _handle_client_message(ws, db_session, customer_user, {"action": "ping"})
        assert ws.sent == [{"event": "pong"}]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_subscribe_own_order(self, db_session, monkeypatch, customer_user, place_order):
        order = await place_order()
        hub = ConnectionManager()
        monkeypatch.setattr("routes.realtime.hub", hub)
        ws = FakeWebSocket()
        await hub.connect(ws, customer_user.id, customer_user.role)

        await _handle_client_message(ws, db_session, customer_user, {"action": "subscribe", "orderId": order.id})
        assert ws.sent[-1] == {"event": "subscribed", "data": {"room": f"order:{order.id}"}}
        assert hub.room_size(f"order:{order.id}") == 1

        await _handle_client_message(ws, db_session, customer_user, {"action": "unsubscribe", "room": f"order:{order.id}"})
        assert ws.sent[-1]["event"] == "unsubscribed"
        assert hub.room_size(f"order:{order.id}") == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_subscribe_foreign_order(self, db_session, monkeypatch, vendor_user, driver, place_order):
        order = await place_order()
        hub = ConnectionManager()
        monkeypatch.setattr("routes.realtime.hub", hub)
        ws = FakeWebSocket()
        await hub.connect(ws, driver.user_id, "driver")

        await _handle_client_message(ws, db_session, driver.user, {"action": "subscribe", "orderId": order.id})
        assert ws.sent[-1] == {"event": "error", "data": {"message": "Order not found"}}
        assert hub.room_size(f"order:{order.id}") == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_subscribe_requires_order_id(self, db_session, customer_user):
        ws = FakeWebSocket()
        await _handle_client_message(ws, db_session, customer_user, {"action": "subscribe"})
        assert ws.sent[-1]["data"]["message"] == "orderId is required"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_action(self, db_session, customer_user):
        ws = FakeWebSocket()
        await _handle_client_message(ws, db_session, customer_user, {"action": "dance"})
        assert ws.sent[-1] == {"event": "error", "data": {"message": "Unknown action: dance"}}
