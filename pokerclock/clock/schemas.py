"""Pydantic schemas for payloads exchanged with the tournament backend
and the webhook endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .calculator import parse_instant
from .models import ControlType, Level


class LevelSchema(BaseModel):
    """Level as returned by the backend (blind amounts are ignored)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    level_number: int = Field(..., gt=0)
    duration_seconds: int = Field(..., gt=0)

    def to_level(self) -> Level:
        return Level(self.level_number, self.duration_seconds)


class TimingFacts(BaseModel):
    """Start instant + levels, enough to seed a clock without a fetch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    start_time: Optional[datetime] = None
    current_level: Optional[int] = None
    levels: List[LevelSchema] = Field(default_factory=list)

    @field_validator("start_time", mode="before")
    @classmethod
    def lenient_start_time(cls, v: Any) -> Optional[datetime]:
        # 파싱 실패는 "타이밍 정보 없음"으로 취급
        return parse_instant(v)

    @property
    def is_complete(self) -> bool:
        return self.start_time is not None and bool(self.levels)

    def domain_levels(self) -> tuple[Level, ...]:
        return tuple(lvl.to_level() for lvl in self.levels)


class TournamentSnapshot(TimingFacts):
    """Durable tournament record from `GET /Tournaments/{id}`."""

    id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @property
    def is_running(self) -> bool:
        return bool(self.status) and self.status.lower() == "running"


class WebhookEmitRequest(BaseModel):
    """Relay request: publish `event` with `data` to a tournament channel."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    tournament_id: Optional[str] = Field(default=None, alias="tournamentId")
    event: Optional[str] = None
    data: Any = None


class WebhookControlRequest(BaseModel):
    """Control instruction relayed by the backend."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    tournament_id: str = Field(..., alias="tournamentId", min_length=1)
    type: ControlType
    data: Optional[Dict[str, Any]] = None
