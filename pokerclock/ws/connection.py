"""One client socket: admin console, player view or paired TV display."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import WebSocket

from pokerclock.utils.json_utils import json_dumps

logger = logging.getLogger(__name__)

TOURNAMENT_CHANNEL_PREFIX = "tournament:"


def tournament_channel(tournament_id: str) -> str:
    """Channel name of a tournament's subscriber set."""
    return f"{TOURNAMENT_CHANNEL_PREFIX}{tournament_id}"


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass
class WebSocketConnection:
    """Socket plus the channels it follows.

    Channel membership is mirrored here so disconnect can clean up
    without scanning every channel in the manager.
    """

    websocket: WebSocket
    connection_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: ConnectionState = ConnectionState.CONNECTED
    subscribed_channels: set[str] = field(default_factory=set)
    display_id: str | None = None  # 페어링 코드 (TV 화면으로 등록된 경우)
    last_ping_at: datetime | None = None

    @property
    def is_display(self) -> bool:
        return self.display_id is not None

    @property
    def tournament_ids(self) -> list[str]:
        """Tournaments this connection currently follows."""
        return sorted(
            channel[len(TOURNAMENT_CHANNEL_PREFIX):]
            for channel in self.subscribed_channels
            if channel.startswith(TOURNAMENT_CHANNEL_PREFIX)
        )

    def is_subscribed(self, channel: str) -> bool:
        return channel in self.subscribed_channels

    def update_ping(self) -> None:
        self.last_ping_at = datetime.now(timezone.utc)

    async def send(self, message: dict[str, Any]) -> bool:
        """Write one JSON text frame. False when the socket is gone."""
        if self.state == ConnectionState.DISCONNECTED:
            return False
        try:
            await self.websocket.send_text(json_dumps(message))
        except Exception as e:
            logger.warning(f"Send failed on {self.connection_id}: {e}")
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.state = ConnectionState.DISCONNECTED
        try:
            await self.websocket.close(code, reason)
        except Exception as e:
            logger.debug(f"Close failed on {self.connection_id}: {e}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "connectedAt": self.connected_at.isoformat(),
            "displayId": self.display_id,
            "tournaments": self.tournament_ids,
        }
