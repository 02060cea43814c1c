"""Display pairing event handlers.

1. TV 화면이 register-display 전송 -> 서버가 코드 발급 (display-id)
2. 관리자 콘솔이 link-display {displayId, tournamentId} 전송
3. 서버가 TV 연결을 토너먼트 채널에 구독시키고 display-linked 전송
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pokerclock.utils.errors import DisplayNotFoundError
from pokerclock.ws.connection import WebSocketConnection, tournament_channel
from pokerclock.ws.displays import DisplayDirectory
from pokerclock.ws.events import EventType
from pokerclock.ws.handlers.base import BaseHandler, require_field, require_tournament_id
from pokerclock.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from pokerclock.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


class DisplayHandler(BaseHandler):
    """Handles display registration and linking."""

    def __init__(self, manager: "ConnectionManager", displays: DisplayDirectory):
        super().__init__(manager)
        self.displays = displays

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.REGISTER_DISPLAY, EventType.LINK_DISPLAY)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        if event.type == EventType.REGISTER_DISPLAY:
            return await self._handle_register(conn, event)
        elif event.type == EventType.LINK_DISPLAY:
            return await self._handle_link(conn, event)
        return None

    async def _handle_register(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope:
        # 재등록 시 이전 코드는 폐기
        if conn.display_id:
            self.displays.forget_connection(conn.connection_id)

        code = self.displays.register(conn.connection_id)
        conn.display_id = code

        logger.info(f"Display registered: {code} (conn={conn.connection_id})")
        return event.reply(EventType.DISPLAY_ID, {"displayId": code})

    async def _handle_link(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> None:
        display_id = require_field(event.payload, "displayId")
        tournament_id = require_tournament_id(event.payload)

        target_id = self.displays.lookup(str(display_id))
        target = self.manager.get_connection(target_id) if target_id else None
        if target is None:
            logger.warning(f"Link failed, display {display_id} not found")
            raise DisplayNotFoundError(str(display_id))

        await self.manager.subscribe(target.connection_id, tournament_channel(tournament_id))
        await target.send(
            MessageEnvelope.create(
                event_type=EventType.DISPLAY_LINKED,
                payload={"tournamentId": tournament_id},
                trace_id=event.trace_id,
            ).to_dict()
        )
        logger.info(f"Display {display_id} linked to tournament {tournament_id}")
        return None
