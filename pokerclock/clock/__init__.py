"""
Tournament clock engine.

This module provides:
- A pure clock calculator (start instant + levels + now -> level, time left)
- One tick loop per running tournament with level-up / finish detection
- Recovery of running clocks from the backend after a restart
- Fan-out of clock events to WebSocket subscribers
"""

from .calculator import derive_state, level_start_offset, parse_instant
from .commands import CommandSurface, parse_control_event
from .engine import ClockEngine
from .gateway import NotificationGateway
from .models import (
    ClockRecord,
    ControlEvent,
    ControlType,
    DerivedState,
    Level,
    TournamentStatus,
)
from .recovery import RecoveryResolver
from .registry import ClockRegistry
from .scheduler import TickOutcome, TickScheduler

__all__ = [
    "derive_state",
    "level_start_offset",
    "parse_instant",
    "CommandSurface",
    "parse_control_event",
    "ClockEngine",
    "NotificationGateway",
    "ClockRecord",
    "ControlEvent",
    "ControlType",
    "DerivedState",
    "Level",
    "TournamentStatus",
    "RecoveryResolver",
    "ClockRegistry",
    "TickOutcome",
    "TickScheduler",
]
