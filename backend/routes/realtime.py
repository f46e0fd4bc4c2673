"""
WebSocket endpoint for the real-time hub.

Connect with `/api/ws?token=<jwt>`. On connect the socket joins
`user:{id}`, `role:{role}` and `all`.

Client messages:
    {"action": "ping"}
    {"action": "subscribe", "orderId": "<id>"}     joins order:{id}
    {"action": "unsubscribe", "orderId": "<id>"}
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from domain.constants import order_room
from domain.enums import UserStatus
from domain.errors import DomainError
from middleware.auth import decode_access_token
from services import order_service
from services.realtime_service import hub

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


async def _authenticate(db: AsyncSession, token: str | None) -> User | None:
    if not token:
        return None
    try:
        claims = decode_access_token(token)
    except DomainError:
        return None
    res = await db.execute(select(User).where(User.id == claims["sub"]))
    user = res.scalar_one_or_none()
    if not user or user.status != UserStatus.ACTIVE.value:
        return None
    return user


def _order_id(data: dict[str, Any]) -> str | None:
    order_id = data.get("orderId")
    room = data.get("room")
    if not order_id and isinstance(room, str) and room.startswith("order:"):
        order_id = room.split(":", 1)[1]
    return order_id or None


async def _handle_client_message(websocket: WebSocket, db: AsyncSession, user: User, data: dict[str, Any]) -> None:
    action = data.get("action")

    if action == "ping":
        await websocket.send_json({"event": "pong"})

    elif action in ("subscribe", "unsubscribe"):
        order_id = _order_id(data)
        if not order_id:
            await websocket.send_json({"event": "error", "data": {"message": "orderId is required"}})
            return
        room = order_room(order_id)
        if action == "unsubscribe":
            hub.leave(websocket, room)
            await websocket.send_json({"event": "unsubscribed", "data": {"room": room}})
            return
        try:
            await order_service.get_order_for_user(db, user=user, order_id=order_id)
        except DomainError:
            await websocket.send_json({"event": "error", "data": {"message": "Order not found"}})
            return
        hub.join(websocket, room)
        await websocket.send_json({"event": "subscribed", "data": {"room": room}})

    else:
        await websocket.send_json({"event": "error", "data": {"message": f"Unknown action: {action}"}})


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> None:
    user = await _authenticate(db, token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id, role = user.id, user.role
    await hub.connect(websocket, user_id, role)
    await websocket.send_json({"event": "connected", "data": {"userId": user_id, "role": role}})
    try:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict):
                await _handle_client_message(websocket, db, user, data)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"Realtime: socket of user {user_id} closed with error: {e}")
    finally:
        hub.disconnect(websocket)
