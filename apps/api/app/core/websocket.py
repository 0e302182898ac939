"""
WebSocket connection manager for realtime change notifications.

Each connection watches a set of tables. Committed changes from the change
feed are pushed to every connection watching the changed table; clients
refetch through the REST API.
"""

from typing import Dict, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

from app.services.change_feed import ChangeEvent, ChangeFeed, Subscription

logger = logging.getLogger(__name__)

# Tables a client may watch
WATCHED_TABLES = frozenset(
    {"document_requests", "announcements", "staff", "profiles", "complaints"}
)


class ConnectionManager:
    """Manages WebSocket connections and the tables each one watches."""

    def __init__(self):
        # websocket -> user_id
        self._users: Dict[WebSocket, UUID] = {}
        # websocket -> watched table names
        self._tables: Dict[WebSocket, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: UUID):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._users[websocket] = user_id
            self._tables[websocket] = set()

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._users.pop(websocket, None)
            self._tables.pop(websocket, None)

    async def subscribe(self, websocket: WebSocket, tables) -> list[str]:
        """Add watched tables; unknown names are ignored. Returns the current set."""
        accepted = {t for t in tables if t in WATCHED_TABLES}
        async with self._lock:
            current = self._tables.setdefault(websocket, set())
            current.update(accepted)
            return sorted(current)

    async def unsubscribe(self, websocket: WebSocket, tables) -> list[str]:
        async with self._lock:
            current = self._tables.setdefault(websocket, set())
            current.difference_update(tables)
            return sorted(current)

    async def broadcast_change(self, change: dict) -> int:
        """Send a change to every connection watching its table. Returns sends made."""
        table = change.get("table")
        async with self._lock:
            connections = [ws for ws, tables in self._tables.items() if table in tables]

        if not connections:
            return 0

        data = json.dumps({"type": "change", "data": change})
        closed = []
        sent = 0

        for ws in connections:
            try:
                await ws.send_text(data)
                sent += 1
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        # Clean up closed connections
        if closed:
            async with self._lock:
                for ws in closed:
                    self._users.pop(ws, None)
                    self._tables.pop(ws, None)
        return sent

    def get_connected_count(self, user_id: UUID) -> int:
        """Get the number of active connections for a user."""
        return sum(1 for uid in self._users.values() if uid == user_id)

    def get_total_connections(self) -> int:
        """Get total number of active connections across all users."""
        return len(self._users)


# Singleton instance
manager = ConnectionManager()


def relay_changes_to_websockets(
    feed: ChangeFeed,
    loop: asyncio.AbstractEventLoop,
    target: ConnectionManager | None = None,
) -> Subscription:
    """
    Forward every watched-table change on the feed to WebSocket clients.

    The feed may publish from request worker threads, so the broadcast is
    scheduled onto the server's event loop.
    """
    target = target or manager

    def _forward(change: ChangeEvent) -> None:
        if loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(target.broadcast_change(change.to_dict()), loop)

    return feed.subscribe(WATCHED_TABLES, _forward)
