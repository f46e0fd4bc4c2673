"""
Real-time hub — WebSocket rooms and event fan-out.

Rooms:
    user:{id}     every socket of one account
    role:{role}   every socket of accounts with that role
    order:{id}    sockets that subscribed to one order
    all           every connected socket

Events carry `{"event": <name>, "data": {...}, "timestamp": <ISO-8601>}`.

Emission is fire-and-forget: emit_* helpers log failures and never raise,
so a broken socket cannot fail the HTTP request that triggered it.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from domain.constants import ROOM_ALL, role_room, user_room

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    websocket: WebSocket
    user_id: str
    role: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rooms: set[str] = field(default_factory=set)


class ConnectionManager:
    """Tracks open sockets and the rooms they joined."""

    def __init__(self) -> None:
        # id(websocket) -> Connection
        self._connections: dict[int, Connection] = {}
        # room -> {id(websocket)}
        self._rooms: dict[str, set[int]] = {}
        self._total_connections = 0
        self._total_messages_sent = 0

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, user_id: str, role: str) -> Connection:
        """Accept the socket and join its default rooms."""
        await websocket.accept()
        conn = Connection(websocket=websocket, user_id=user_id, role=role)
        self._connections[id(websocket)] = conn
        self._total_connections += 1
        for room in (user_room(user_id), role_room(role), ROOM_ALL):
            self.join(websocket, room)
        logger.info(f"Realtime: user {user_id} ({role}) connected")
        return conn

    def disconnect(self, websocket: WebSocket) -> None:
        conn = self._connections.pop(id(websocket), None)
        if not conn:
            return
        for room in list(conn.rooms):
            self._leave_room(id(websocket), room)
        logger.info(f"Realtime: user {conn.user_id} disconnected")

    def join(self, websocket: WebSocket, room: str) -> None:
        conn = self._connections.get(id(websocket))
        if not conn:
            return
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(id(websocket))

    def leave(self, websocket: WebSocket, room: str) -> None:
        self._leave_room(id(websocket), room)

    def _leave_room(self, key: int, room: str) -> None:
        conn = self._connections.get(key)
        if conn:
            conn.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(key)
            if not members:
                del self._rooms[room]

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def emit(self, room: str, event: str, data: dict[str, Any]) -> int:
        """
        Send an event to every socket in `room`.

        Returns the number of sockets reached. Sockets that fail to receive
        are dropped.
        """
        message = {
            "event": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        sent = 0
        failed: list[int] = []
        for key in list(self._rooms.get(room, ())):
            conn = self._connections.get(key)
            if not conn:
                continue
            try:
                await conn.websocket.send_json(message)
                sent += 1
                self._total_messages_sent += 1
            except Exception as e:
                logger.warning(f"Realtime: dropping socket of user {conn.user_id}: {e}")
                failed.append(key)
        for key in failed:
            conn = self._connections.get(key)
            if conn:
                self.disconnect(conn.websocket)
        return sent

    def get_stats(self) -> dict[str, Any]:
        return {
            "activeConnections": self.active_connections,
            "rooms": len(self._rooms),
            "totalConnections": self._total_connections,
            "totalMessagesSent": self._total_messages_sent,
        }


# Process-wide hub used by every emitter
hub = ConnectionManager()


async def emit_safely(room: str, event: str, data: dict[str, Any]) -> int:
    """Emit without ever raising; returns sockets reached (0 on failure)."""
    try:
        return await hub.emit(room, event, data)
    except Exception as e:
        logger.error(f"Realtime emit of {event} to {room} failed: {e}", exc_info=True)
        return 0


async def emit_to_user(user_id: str, event: str, data: dict[str, Any]) -> int:
    return await emit_safely(user_room(user_id), event, data)


async def emit_to_role(role: str, event: str, data: dict[str, Any]) -> int:
    return await emit_safely(role_room(role), event, data)


async def broadcast(event: str, data: dict[str, Any]) -> int:
    return await emit_safely(ROOM_ALL, event, data)
