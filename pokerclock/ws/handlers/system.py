"""Heartbeat and connection-state frames."""

import logging
from datetime import datetime, timezone

from pokerclock.ws.connection import ConnectionState, WebSocketConnection
from pokerclock.ws.events import EventType
from pokerclock.ws.handlers.base import BaseHandler
from pokerclock.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class SystemHandler(BaseHandler):
    """PING -> PONG. 디스플레이 화면의 연결 유지 확인용."""

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.PING,)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        conn.update_ping()
        return event.reply(EventType.PONG, {})


def create_connection_state_message(
    state: ConnectionState,
    connection_id: str,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """Welcome frame sent right after accept.

    serverTime lets a display estimate its clock offset before the first
    timer-sync arrives.
    """
    return MessageEnvelope.create(
        event_type=EventType.CONNECTION_STATE,
        payload={
            "state": state.value,
            "connectionId": connection_id,
            "serverTime": datetime.now(timezone.utc).isoformat(),
        },
        trace_id=trace_id,
    )
