"""Handler contract shared by every WebSocket event group."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pokerclock.utils.errors import MissingFieldError
from pokerclock.ws.connection import WebSocketConnection
from pokerclock.ws.events import EventType
from pokerclock.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from pokerclock.ws.manager import ConnectionManager


def require_field(payload: dict[str, Any], name: str) -> Any:
    """Value of a mandatory payload field. None and "" count as missing."""
    value = payload.get(name)
    if value is None or value == "":
        raise MissingFieldError(name)
    return value


def require_tournament_id(payload: dict[str, Any]) -> str:
    # 백엔드 id가 숫자로 올 수 있음
    return str(require_field(payload, "tournamentId"))


class BaseHandler(ABC):
    """One group of related client events.

    `handle` returns the direct reply for the sender (or None) and raises
    ClockError on bad input; the gateway turns that into an ERROR frame
    for the same request.
    """

    def __init__(self, manager: "ConnectionManager"):
        self.manager = manager

    @property
    @abstractmethod
    def handled_events(self) -> tuple[EventType, ...]:
        ...

    @abstractmethod
    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        ...

    def can_handle(self, event_type: EventType) -> bool:
        return event_type in self.handled_events
