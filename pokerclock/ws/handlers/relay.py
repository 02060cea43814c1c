"""Relay event handlers.

Messages that pass through the server unchanged apart from their name:
- player-action -> player-action to everyone else in the channel
- admin-instruction -> tournament-instruction to the whole channel
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pokerclock.clock.gateway import NotificationGateway
from pokerclock.ws.connection import WebSocketConnection
from pokerclock.ws.events import EventType
from pokerclock.ws.handlers.base import BaseHandler, require_tournament_id
from pokerclock.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from pokerclock.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


class RelayHandler(BaseHandler):
    """Forwards player actions and admin instructions to a tournament channel."""

    def __init__(self, manager: "ConnectionManager", gateway: NotificationGateway):
        super().__init__(manager)
        self.gateway = gateway

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.PLAYER_ACTION, EventType.ADMIN_INSTRUCTION)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        tournament_id = require_tournament_id(event.payload)

        if event.type == EventType.PLAYER_ACTION:
            await self.gateway.publish(
                tournament_id,
                EventType.PLAYER_ACTION,
                {
                    "action": event.payload.get("action"),
                    "payload": event.payload.get("payload"),
                },
                exclude_connection=conn.connection_id,
            )
        elif event.type == EventType.ADMIN_INSTRUCTION:
            logger.info(
                f"Admin instruction for {tournament_id}: {event.payload.get('type')}"
            )
            await self.gateway.publish(
                tournament_id,
                EventType.TOURNAMENT_INSTRUCTION,
                {
                    "type": event.payload.get("type"),
                    "message": event.payload.get("message"),
                    "payload": event.payload.get("payload"),
                },
            )
        return None
