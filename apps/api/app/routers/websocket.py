"""
WebSocket router for realtime change notifications.

Provides a WebSocket endpoint that:
1. Authenticates users via JWT cookie (or ?token=)
2. Lets the client choose which tables to watch
3. Pushes {"type": "change", "data": {...}} for committed changes
"""

import json
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.core.deps import COOKIE_NAME
from app.core.security import decode_session_token
from app.core.websocket import manager

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _user_from_token(token: str | None) -> UUID | None:
    if not token:
        return None
    try:
        return UUID(decode_session_token(token)["sub"])
    except Exception:
        return None


@router.websocket("/changes")
async def websocket_changes(
    websocket: WebSocket,
    token: str | None = Query(None),
):
    """
    Client messages:
    - "ping" -> "pong"
    - {"action": "subscribe", "tables": [...]}
    - {"action": "unsubscribe", "tables": [...]}
    Both actions answer {"type": "subscribed", "tables": [<current set>]}.
    """
    user_id = _user_from_token(token) or _user_from_token(websocket.cookies.get(COOKIE_NAME))
    if not user_id:
        await websocket.close(code=4001, reason="Authentication required")
        return

    await manager.connect(websocket, user_id)

    try:
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            if data == "ping":
                await websocket.send_text("pong")
                continue

            try:
                message = json.loads(data)
            except ValueError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid JSON"}))
                continue

            action = message.get("action") if isinstance(message, dict) else None
            tables = message.get("tables") if isinstance(message, dict) else None
            if action not in ("subscribe", "unsubscribe") or not isinstance(tables, list):
                await websocket.send_text(
                    json.dumps({"type": "error", "detail": "Unknown message"})
                )
                continue

            names = [t for t in tables if isinstance(t, str)]
            if action == "subscribe":
                current = await manager.subscribe(websocket, names)
            else:
                current = await manager.unsubscribe(websocket, names)
            await websocket.send_text(json.dumps({"type": "subscribed", "tables": current}))
    finally:
        await manager.disconnect(websocket)
