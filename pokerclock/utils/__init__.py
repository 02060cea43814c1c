"""Utility modules."""

from pokerclock.utils.errors import ClockError, ErrorCode
from pokerclock.utils.http_client import AsyncHttpClient
from pokerclock.utils.json_utils import ORJSONResponse, json_dumps, json_loads

__all__ = [
    "ClockError",
    "ErrorCode",
    "AsyncHttpClient",
    "ORJSONResponse",
    "json_dumps",
    "json_loads",
]
