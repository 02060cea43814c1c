"""WebSocket gateway endpoint.

Main WebSocket entry point for admin consoles, viewers and display screens.
Every frame is a JSON MessageEnvelope `{type, ts, traceId, payload, version}`.
No authentication: the clock carries no private data and control is
guarded by the backend.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from pokerclock.logging_config import bind_context, clear_context
from pokerclock.utils.errors import ClockError, ErrorCode
from pokerclock.ws.connection import ConnectionState, WebSocketConnection
from pokerclock.ws.events import CLIENT_TO_SERVER_EVENTS, EventType
from pokerclock.ws.handlers.base import BaseHandler
from pokerclock.ws.handlers.display import DisplayHandler
from pokerclock.ws.handlers.relay import RelayHandler
from pokerclock.ws.handlers.system import SystemHandler, create_connection_state_message
from pokerclock.ws.handlers.tournament import TournamentHandler
from pokerclock.ws.messages import MessageEnvelope, error_message_from

if TYPE_CHECKING:
    from pokerclock.clock.engine import ClockEngine

logger = logging.getLogger(__name__)
router = APIRouter(tags=["WebSocket"])


class HandlerRegistry:
    """Event type -> handler for one connection."""

    def __init__(self, engine: "ClockEngine"):
        manager = engine.manager
        handlers: tuple[BaseHandler, ...] = (
            SystemHandler(manager),
            TournamentHandler(manager, engine.scheduler, engine.resolver, engine.commands),
            DisplayHandler(manager, engine.displays),
            RelayHandler(manager, engine.gateway),
        )
        self._by_event: dict[EventType, BaseHandler] = {
            event_type: handler
            for handler in handlers
            for event_type in handler.handled_events
        }

    def get_handler(self, event_type: EventType) -> BaseHandler | None:
        return self._by_event.get(event_type)


async def _route(
    registry: HandlerRegistry,
    conn: WebSocketConnection,
    event: MessageEnvelope,
) -> MessageEnvelope | None:
    if event.type not in CLIENT_TO_SERVER_EVENTS:
        raise ClockError(
            ErrorCode.INVALID_EVENT_DIRECTION,
            f"Event {event.type_name} cannot be sent by client",
        )
    if not isinstance(event.payload, dict):
        raise ClockError(ErrorCode.INVALID_PAYLOAD, "payload must be an object")

    handler = registry.get_handler(event.type)
    if handler is None:
        raise ClockError(ErrorCode.UNKNOWN_EVENT, f"Unknown event type: {event.type_name}")
    return await handler.handle(conn, event)


async def dispatch(
    registry: HandlerRegistry,
    conn: WebSocketConnection,
    raw: str | bytes,
) -> None:
    """Decode one inbound frame, route it and send the reply or ERROR.

    A bad frame only costs its sender an ERROR envelope; the socket and
    every other connection keep going.
    """
    try:
        event = MessageEnvelope.decode(raw)
    except ValueError as e:
        logger.warning(f"Undecodable frame from {conn.connection_id}: {e}")
        error = ClockError(ErrorCode.INVALID_MESSAGE, f"Invalid message format: {e}")
        await conn.send(error_message_from(error).to_dict())
        return

    try:
        response = await _route(registry, conn, event)
    except ClockError as e:
        logger.warning(f"Rejected {event.type_name} from {conn.connection_id}: {e.code} {e.message}")
        response = error_message_from(e, event)
    except Exception as e:
        logger.exception(f"Handler error on {event.type_name}: {e}")
        error = ClockError(ErrorCode.INTERNAL_ERROR, "Internal handler error", recoverable=False)
        response = error_message_from(error, event)

    if response is not None:
        await conn.send(response.to_dict())


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket connection endpoint."""
    engine: ClockEngine = websocket.app.state.engine
    manager = engine.manager

    await websocket.accept()

    connection_id = str(uuid4())
    conn = WebSocketConnection(
        websocket=websocket,
        connection_id=connection_id,
        connected_at=datetime.now(timezone.utc),
    )
    await manager.connect(conn)
    bind_context(connection_id=connection_id)

    welcome_message = create_connection_state_message(
        state=ConnectionState.CONNECTED,
        connection_id=connection_id,
    )
    await conn.send(welcome_message.to_dict())

    registry = HandlerRegistry(engine)

    try:
        while True:
            raw = await websocket.receive_text()
            await dispatch(registry, conn, raw)

    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: conn={connection_id}, code={e.code}")

    except Exception as e:
        logger.exception(f"WebSocket error: {e}")

    finally:
        followed = conn.tournament_ids
        engine.displays.forget_connection(connection_id)
        await manager.disconnect(connection_id)
        logger.info(
            f"WebSocket cleanup complete: conn={connection_id}, "
            f"display={conn.is_display}, tournaments={followed}"
        )
        clear_context()


@router.get("/ws/stats")
async def websocket_stats(request: Request) -> dict[str, Any]:
    """Get WebSocket connection statistics (for monitoring)."""
    engine: ClockEngine = request.app.state.engine
    return {
        "connections": engine.manager.connection_count,
        "displays": len(engine.displays),
        "activeClocks": len(engine.registry),
        "status": "running",
    }
