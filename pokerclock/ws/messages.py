"""WebSocket frame envelope.

Every frame in both directions is one JSON object:

    {"type": "timer-sync", "ts": 1735732800000, "traceId": "...",
     "payload": {...}, "version": "v1", "requestId": "..."}

`requestId` is echoed on direct replies and errors so a console can match
them to what it sent; broadcasts carry none.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from pokerclock.utils.errors import ClockError
from pokerclock.utils.json_utils import json_loads
from pokerclock.ws.events import EventType

PROTOCOL_VERSION = "v1"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_trace_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class MessageEnvelope:
    # EventType for protocol events; webhook relays keep the backend's name
    type: EventType | str
    payload: Any
    ts: int = field(default_factory=_now_ms)
    trace_id: str = field(default_factory=_new_trace_id)
    version: str = PROTOCOL_VERSION
    request_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: EventType | str,
        payload: Any,
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        return cls(
            type=event_type,
            payload=payload,
            trace_id=trace_id or _new_trace_id(),
            request_id=request_id,
        )

    @classmethod
    def from_dict(cls, data: Any) -> MessageEnvelope:
        """Inbound frame -> envelope. A missing payload becomes {}.

        Raises:
            ValueError: not an object, no "type", or an unknown type
        """
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError("frame must be an object with a 'type' field")
        payload = data.get("payload")
        return cls(
            type=EventType(data["type"]),
            payload={} if payload is None else payload,
            ts=data.get("ts") or _now_ms(),
            trace_id=data.get("traceId") or _new_trace_id(),
            version=data.get("version", PROTOCOL_VERSION),
            request_id=data.get("requestId"),
        )

    @classmethod
    def decode(cls, raw: str | bytes) -> MessageEnvelope:
        """Raw text frame -> envelope. Bad JSON raises ValueError too."""
        return cls.from_dict(json_loads(raw))

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, EventType) else self.type

    def reply(self, event_type: EventType, payload: Any) -> MessageEnvelope:
        """Envelope answering this one (same requestId and traceId)."""
        return MessageEnvelope.create(
            event_type, payload, request_id=self.request_id, trace_id=self.trace_id
        )

    def to_dict(self) -> dict[str, Any]:
        frame: dict[str, Any] = {
            "type": self.type_name,
            "ts": self.ts,
            "traceId": self.trace_id,
            "payload": self.payload,
            "version": self.version,
        }
        if self.request_id:
            frame["requestId"] = self.request_id
        return frame


def error_message_from(
    error: ClockError,
    cause: MessageEnvelope | None = None,
) -> MessageEnvelope:
    """ERROR envelope for `error`, correlated with the frame that caused it."""
    if cause is not None:
        return cause.reply(EventType.ERROR, error.to_dict())
    return MessageEnvelope.create(EventType.ERROR, error.to_dict())
