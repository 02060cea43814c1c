"""WebSocket event type definitions."""

from enum import Enum


class EventType(str, Enum):
    """All WebSocket event types."""

    # System events
    PING = "PING"
    PONG = "PONG"
    CONNECTION_STATE = "CONNECTION_STATE"
    ERROR = "ERROR"

    # Tournament clock events
    JOIN_TOURNAMENT = "join-tournament"
    LEAVE_TOURNAMENT = "leave-tournament"
    TOURNAMENT_CONTROL = "tournament-control"
    TIMER_SYNC = "timer-sync"

    # Display pairing events
    REGISTER_DISPLAY = "register-display"
    DISPLAY_ID = "display-id"
    LINK_DISPLAY = "link-display"
    DISPLAY_LINKED = "display-linked"

    # Relay events
    PLAYER_ACTION = "player-action"
    ADMIN_INSTRUCTION = "admin-instruction"
    TOURNAMENT_INSTRUCTION = "tournament-instruction"


# Event direction mapping
# Note: tournament-control and player-action travel both ways
CLIENT_TO_SERVER_EVENTS = frozenset([
    EventType.PING,
    EventType.JOIN_TOURNAMENT,
    EventType.LEAVE_TOURNAMENT,
    EventType.TOURNAMENT_CONTROL,
    EventType.REGISTER_DISPLAY,
    EventType.LINK_DISPLAY,
    EventType.PLAYER_ACTION,
    EventType.ADMIN_INSTRUCTION,
])

SERVER_TO_CLIENT_EVENTS = frozenset([
    EventType.PONG,
    EventType.CONNECTION_STATE,
    EventType.ERROR,
    EventType.TOURNAMENT_CONTROL,
    EventType.TIMER_SYNC,
    EventType.DISPLAY_ID,
    EventType.DISPLAY_LINKED,
    EventType.PLAYER_ACTION,
    EventType.TOURNAMENT_INSTRUCTION,
])
