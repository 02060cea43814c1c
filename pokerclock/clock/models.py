"""
Clock Data Models.

Level and DerivedState are immutable. ClockRecord is the registry's value
type; only its own scheduler iteration mutates it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ControlType(str, Enum):
    """Control instructions carried by `tournament-control` messages."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    FINISH = "finish"
    UPDATE_LEVEL = "update-level"


class TournamentStatus(str, Enum):
    """Status strings as stored by the backend."""

    RUNNING = "Running"
    PAUSED = "Paused"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class Level:
    """One timed blind level."""

    level_number: int
    duration_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "levelNumber": self.level_number,
            "durationSeconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class DerivedState:
    """Calculator output. Never stored."""

    finished: bool
    current_level: int
    time_remaining_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finished": self.finished,
            "currentLevel": self.current_level,
            "timeLeft": self.time_remaining_seconds,
        }


@dataclass
class ClockRecord:
    """Live clock of one running tournament.

    reference_instant is the tournament start (elapsed-time basis).
    """

    tournament_id: str
    reference_instant: datetime
    levels: Tuple[Level, ...]
    cached_current_level: int = 1
    timer_handle: Optional[asyncio.Task] = None
    seeded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_ticking(self) -> bool:
        return self.timer_handle is not None and not self.timer_handle.done()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournamentId": self.tournament_id,
            "startTime": self.reference_instant.isoformat(),
            "levels": [lvl.to_dict() for lvl in self.levels],
            "cachedCurrentLevel": self.cached_current_level,
            "ticking": self.is_ticking,
            "seededAt": self.seeded_at.isoformat(),
        }


@dataclass(frozen=True)
class ControlEvent:
    """Inbound control instruction (WebSocket command or relayed webhook)."""

    tournament_id: str
    type: ControlType
    data: Dict[str, Any] = field(default_factory=dict)
