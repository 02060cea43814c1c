"""Tournament clock event handlers.

- join-tournament: 채널 구독 + 즉시 현재 레벨/남은 시간 전송 (필요 시 복구)
- leave-tournament: 채널 구독 해제
- tournament-control: 관리자 콘솔의 start/pause/resume/finish/update-level
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pokerclock.clock.commands import CommandSurface, parse_control_event
from pokerclock.clock.models import ControlType
from pokerclock.clock.recovery import RecoveryResolver
from pokerclock.clock.scheduler import TickScheduler, control_payload, timer_sync_payload
from pokerclock.ws.connection import WebSocketConnection, tournament_channel
from pokerclock.ws.events import EventType
from pokerclock.ws.handlers.base import BaseHandler, require_field, require_tournament_id
from pokerclock.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from pokerclock.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


class TournamentHandler(BaseHandler):
    """Handles subscription and control of tournament clocks."""

    def __init__(
        self,
        manager: "ConnectionManager",
        scheduler: TickScheduler,
        resolver: RecoveryResolver,
        commands: CommandSurface,
    ):
        super().__init__(manager)
        self.scheduler = scheduler
        self.resolver = resolver
        self.commands = commands

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (
            EventType.JOIN_TOURNAMENT,
            EventType.LEAVE_TOURNAMENT,
            EventType.TOURNAMENT_CONTROL,
        )

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        if event.type == EventType.JOIN_TOURNAMENT:
            return await self._handle_join(conn, event)
        elif event.type == EventType.LEAVE_TOURNAMENT:
            return await self._handle_leave(conn, event)
        elif event.type == EventType.TOURNAMENT_CONTROL:
            return await self._handle_control(conn, event)
        return None

    async def _handle_join(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> None:
        """Subscribe, then sync the joining connection right away.

        A tournament that is running on the backend but unknown here
        (process restart) is recovered before the sync.
        """
        tournament_id = require_tournament_id(event.payload)
        await self.manager.subscribe(conn.connection_id, tournament_channel(tournament_id))
        logger.info(f"Connection {conn.connection_id} joined tournament {tournament_id}")

        record = await self.resolver.ensure(tournament_id)
        if record is None:
            return None

        state = self.scheduler.current_state(tournament_id)
        if state is None:
            return None

        gateway = self.commands.gateway
        await gateway.send_to(
            conn.connection_id,
            EventType.TOURNAMENT_CONTROL,
            control_payload(ControlType.UPDATE_LEVEL, {"level": state.current_level}),
            trace_id=event.trace_id,
        )
        await gateway.send_to(
            conn.connection_id,
            EventType.TIMER_SYNC,
            timer_sync_payload(state),
            trace_id=event.trace_id,
        )
        return None

    async def _handle_leave(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> None:
        tournament_id = require_tournament_id(event.payload)
        await self.manager.unsubscribe(conn.connection_id, tournament_channel(tournament_id))
        logger.debug(f"Connection {conn.connection_id} left tournament {tournament_id}")
        return None

    async def _handle_control(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> None:
        """Apply an admin control command.

        Payload: {tournamentId, type, level?, data?}
        """
        payload = event.payload
        tournament_id = require_tournament_id(payload)
        control_type = require_field(payload, "type")

        data = payload.get("data")
        if data is None and "level" in payload:
            data = {"level": payload["level"]}

        control = parse_control_event(tournament_id, control_type, data)
        await self.commands.apply(control)
        return None
