"""orjson helpers for WebSocket frames and HTTP responses.

Datetimes are written as ISO-8601 with a `Z` suffix. Domain objects that
expose `to_dict()` (records, derived states) serialize through it, so a
handler can put them straight into a payload.
"""

from datetime import timedelta
from typing import Any

import orjson
from fastapi.responses import JSONResponse

# dataclasses serialize through their to_dict(), not field names
_OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS | orjson.OPT_PASSTHROUGH_DATACLASS


def _default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_dumps(data: Any) -> str:
    """One WebSocket text frame."""
    return orjson.dumps(data, default=_default, option=_OPTIONS).decode()


def json_loads(data: str | bytes) -> Any:
    return orjson.loads(data)


class ORJSONResponse(JSONResponse):
    """Default FastAPI response class of the app."""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, default=_default, option=_OPTIONS)
