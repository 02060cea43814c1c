"""WebSocket event handlers."""

from pokerclock.ws.handlers.base import BaseHandler
from pokerclock.ws.handlers.system import SystemHandler
from pokerclock.ws.handlers.tournament import TournamentHandler
from pokerclock.ws.handlers.display import DisplayHandler
from pokerclock.ws.handlers.relay import RelayHandler

__all__ = [
    "BaseHandler",
    "SystemHandler",
    "TournamentHandler",
    "DisplayHandler",
    "RelayHandler",
]
