"""Live sockets and tournament channel membership.

Everything runs on the one event loop that owns the sockets, so the maps
are plain dicts. A socket that fails a send is reported by
`WebSocketConnection.send` and skipped; it is removed when its receive
loop ends.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from pokerclock.ws.connection import ConnectionState, WebSocketConnection

logger = logging.getLogger(__name__)

SHUTDOWN_CLOSE_CODE = 1001  # going away


class ConnectionManager:
    def __init__(self) -> None:
        self._connections: dict[str, WebSocketConnection] = {}
        self._channels: defaultdict[str, set[str]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_connection(self, connection_id: str) -> WebSocketConnection | None:
        return self._connections.get(connection_id)

    async def connect(self, conn: WebSocketConnection) -> None:
        self._connections[conn.connection_id] = conn
        logger.info(f"Connected {conn.connection_id} ({len(self._connections)} open)")

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and every channel it was in. Idempotent."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return

        conn.state = ConnectionState.DISCONNECTED
        for channel in list(conn.subscribed_channels):
            self._leave(conn, channel)

        logger.info(f"Disconnected {connection_id} ({len(self._connections)} open)")

    async def close_all(self) -> None:
        """Close every socket with 1001 (process shutdown)."""
        for conn in list(self._connections.values()):
            await conn.close(SHUTDOWN_CLOSE_CODE, "Server shutting down")
            await self.disconnect(conn.connection_id)

    # ── channels ──────────────────────────────────────────────────────────────

    async def subscribe(self, connection_id: str, channel: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        self._channels[channel].add(connection_id)
        conn.subscribed_channels.add(channel)
        logger.debug(f"{connection_id} +{channel}")
        return True

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        self._leave(conn, channel)
        logger.debug(f"{connection_id} -{channel}")
        return True

    def _leave(self, conn: WebSocketConnection, channel: str) -> None:
        conn.subscribed_channels.discard(channel)
        members = self._channels.get(channel)
        if members is None:
            return
        members.discard(conn.connection_id)
        if not members:
            del self._channels[channel]

    def get_channel_subscribers(self, channel: str) -> list[str]:
        return list(self._channels.get(channel, ()))

    def get_channel_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    # ── delivery ──────────────────────────────────────────────────────────────

    async def broadcast_to_channel(
        self,
        channel: str,
        message: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> int:
        """Send to every member, in subscription-independent order.

        Returns how many sockets accepted the frame.
        """
        delivered = 0
        for connection_id in self.get_channel_subscribers(channel):
            if connection_id == exclude_connection:
                continue
            conn = self._connections.get(connection_id)
            if conn is not None and await conn.send(message):
                delivered += 1
        return delivered

    async def send_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        conn = self._connections.get(connection_id)
        return conn is not None and await conn.send(message)
