"""WebSocket gateway module for real-time clock distribution."""

from pokerclock.ws.events import EventType
from pokerclock.ws.messages import MessageEnvelope
from pokerclock.ws.connection import WebSocketConnection, ConnectionState
from pokerclock.ws.manager import ConnectionManager

__all__ = [
    "EventType",
    "MessageEnvelope",
    "WebSocketConnection",
    "ConnectionState",
    "ConnectionManager",
]
