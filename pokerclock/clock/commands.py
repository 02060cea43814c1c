"""
Command Surface.

start / pause / resume / finish / update-level 제어 명령을 처리합니다.

State per tournament: Idle (no record) -> Running (record + timer) -> Idle.

- WebSocket admin commands go through the backend (`POST {id}/start|resume`)
  and seed from the record it returns.
- Relayed webhook commands already reflect a backend state change: they seed
  from the timing facts in `data` when present, otherwise resync from a
  fresh fetch, and never PATCH the change back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from pokerclock.logging_config import get_logger, tournament_context
from pokerclock.utils.errors import BackendUnavailableError, InvalidCommandError
from pokerclock.ws.events import EventType

from .backend_client import TournamentBackendClient
from .calculator import derive_state, level_start_offset
from .gateway import NotificationGateway
from .models import ClockRecord, ControlEvent, ControlType, TournamentStatus
from .recovery import RecoveryResolver, record_from_facts
from .registry import ClockRegistry
from .scheduler import TickScheduler, control_payload
from .schemas import TimingFacts

logger = get_logger(__name__)


def parse_control_event(
    tournament_id: Any,
    control_type: Any,
    data: Optional[Dict[str, Any]] = None,
) -> ControlEvent:
    """Validate raw inbound fields into a ControlEvent.

    Raises:
        InvalidCommandError: missing id, unknown type or non-object data
    """
    if not tournament_id:
        raise InvalidCommandError("tournamentId is required")
    try:
        parsed_type = ControlType(control_type)
    except ValueError:
        raise InvalidCommandError(
            f"Unknown control type: {control_type}",
            {"type": control_type, "allowed": [t.value for t in ControlType]},
        )
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidCommandError("data must be an object", {"type": parsed_type.value})
    return ControlEvent(tournament_id=str(tournament_id), type=parsed_type, data=data)


def level_from(data: Dict[str, Any]) -> int:
    """Extract the target level of an update-level command."""
    value = data.get("level", data.get("currentLevel"))
    if isinstance(value, bool):
        value = None
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise InvalidCommandError("update-level requires an integer level", {"level": value})
    if level < 1:
        raise InvalidCommandError("level must be positive", {"level": level})
    return level


class CommandSurface:
    """Applies control instructions to the clock engine."""

    def __init__(
        self,
        registry: ClockRegistry,
        scheduler: TickScheduler,
        gateway: NotificationGateway,
        backend: TournamentBackendClient,
        resolver: RecoveryResolver,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.gateway = gateway
        self.backend = backend
        self.resolver = resolver

    # ─────────────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────────────

    async def apply(self, event: ControlEvent, relayed: bool = False) -> Optional[ClockRecord]:
        """Dispatch one control event.

        Args:
            event: validated control event
            relayed: True when the backend already applied the change
                (webhook); the engine then neither calls nor PATCHes it.
        """
        with tournament_context(event.tournament_id):
            logger.info(
                f"Control received: {event.type.value} for {event.tournament_id}"
                f"{' (relayed)' if relayed else ''}"
            )
            return await self._dispatch(event, relayed)

    async def _dispatch(self, event: ControlEvent, relayed: bool) -> Optional[ClockRecord]:
        tournament_id = event.tournament_id

        if event.type in (ControlType.START, ControlType.RESUME):
            if relayed:
                facts = self._facts_from(event)
                if facts is None:
                    return await self._resync_and_announce(tournament_id, event.type)
                if event.type == ControlType.START:
                    return await self.start(tournament_id, facts)
                return await self.resume(tournament_id, facts)
            if event.type == ControlType.START:
                return await self.start(tournament_id)
            return await self.resume(tournament_id)

        if event.type == ControlType.PAUSE:
            await self.pause(tournament_id, notify=not relayed)
            return None

        if event.type == ControlType.FINISH:
            await self.finish(tournament_id, notify=not relayed)
            return None

        return await self.update_level(
            tournament_id, level_from(event.data), notify=not relayed
        )

    # ─────────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────────

    async def start(
        self, tournament_id: str, facts: Optional[TimingFacts] = None
    ) -> Optional[ClockRecord]:
        """Idle -> Running. Without facts the backend is asked to start.

        When a newer command lands while the backend call is in flight,
        nothing is seeded and whatever that command left is returned.
        """
        if facts is not None:
            return await self._seed_and_announce(tournament_id, facts, ControlType.START)
        return await self._backend_transition(
            tournament_id, ControlType.START, self.backend.start_tournament
        )

    async def resume(
        self, tournament_id: str, facts: Optional[TimingFacts] = None
    ) -> Optional[ClockRecord]:
        """Idle -> Running after a pause.

        The backend's resume endpoint returns a start instant already
        shifted by the paused duration.
        """
        if facts is not None:
            return await self._seed_and_announce(tournament_id, facts, ControlType.RESUME)
        return await self._backend_transition(
            tournament_id, ControlType.RESUME, self.backend.resume_tournament
        )

    async def pause(self, tournament_id: str, notify: bool = True) -> Optional[ClockRecord]:
        """Running -> Idle. No-op on the clock when nothing is running."""
        record = self.scheduler.stop(tournament_id)
        if record is None:
            logger.info(f"Pause with no running clock: {tournament_id}")
        if notify:
            self.gateway.notify_external(
                tournament_id, {"Status": TournamentStatus.PAUSED.value}
            )
        await self.gateway.publish(
            tournament_id, EventType.TOURNAMENT_CONTROL, control_payload(ControlType.PAUSE)
        )
        return record

    async def finish(self, tournament_id: str, notify: bool = True) -> Optional[ClockRecord]:
        """Running -> Idle (terminal). Repeating it only re-announces."""
        record = self.scheduler.stop(tournament_id)
        if notify:
            self.gateway.notify_external(
                tournament_id, {"Status": TournamentStatus.COMPLETED.value}
            )
        await self.gateway.publish(
            tournament_id, EventType.TOURNAMENT_CONTROL, control_payload(ControlType.FINISH)
        )
        return record

    async def update_level(
        self, tournament_id: str, level: int, notify: bool = True
    ) -> ClockRecord:
        """Force the clock onto the start of `level`.

        The reference instant is shifted so the calculator lands exactly on
        the new level; the timer restarts from there.
        """
        record = await self.resolver.ensure(tournament_id)
        if record is None:
            raise InvalidCommandError(
                f"No running clock for tournament {tournament_id}",
                {"tournamentId": tournament_id},
            )

        offset = level_start_offset(record.levels, level)
        if offset is None:
            raise InvalidCommandError(
                f"Level {level} is not part of tournament {tournament_id}",
                {"tournamentId": tournament_id, "level": level},
            )

        overridden = ClockRecord(
            tournament_id=tournament_id,
            reference_instant=self.scheduler.now() - offset,
            levels=record.levels,
            cached_current_level=level,
        )
        self.scheduler.seed(overridden)
        logger.info(
            f"Level override: {tournament_id}, {record.cached_current_level} -> {level}"
        )

        await self.gateway.publish(
            tournament_id,
            EventType.TOURNAMENT_CONTROL,
            control_payload(ControlType.UPDATE_LEVEL, {"level": level}),
        )
        if notify:
            self.gateway.notify_external(tournament_id, {"CurrentLevel": level})
        return overridden

    async def resync(self, tournament_id: str) -> Optional[ClockRecord]:
        """Drop the local clock and rebuild it from the backend record."""
        self.scheduler.stop(tournament_id)
        return await self.resolver.recover(tournament_id)

    # ─────────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────────

    async def _backend_transition(
        self,
        tournament_id: str,
        control: ControlType,
        call: Callable[[str], Awaitable[Optional[TimingFacts]]],
    ) -> Optional[ClockRecord]:
        generation = self.registry.generation(tournament_id)
        facts = await call(tournament_id)
        if facts is None:
            raise BackendUnavailableError(tournament_id, control.value)

        if self.registry.generation(tournament_id) != generation:
            # 백엔드 응답 대기 중 pause/finish/재시작이 먼저 처리됨
            logger.info(
                f"{control.value} superseded while waiting on backend: {tournament_id}"
            )
            return self.registry.get(tournament_id)
        return await self._seed_and_announce(tournament_id, facts, control)

    async def _seed_and_announce(
        self, tournament_id: str, facts: TimingFacts, control: ControlType
    ) -> ClockRecord:
        record = record_from_facts(tournament_id, facts)
        if record is None:
            raise InvalidCommandError(
                f"{control.value} requires a start time and levels",
                {"tournamentId": tournament_id},
            )

        level = self._level_at(record, self.scheduler.now())
        record.cached_current_level = level
        self.scheduler.seed(record)

        await self.gateway.publish(
            tournament_id,
            EventType.TOURNAMENT_CONTROL,
            control_payload(control, {"level": level}),
        )
        return record

    async def _resync_and_announce(
        self, tournament_id: str, control: ControlType
    ) -> Optional[ClockRecord]:
        record = await self.resync(tournament_id)
        if record is None:
            logger.warning(
                f"Relayed {control.value} could not seed a clock: {tournament_id}"
            )
            return None
        await self.gateway.publish(
            tournament_id,
            EventType.TOURNAMENT_CONTROL,
            control_payload(control, {"level": record.cached_current_level}),
        )
        return record

    @staticmethod
    def _level_at(record: ClockRecord, now: datetime) -> int:
        state = derive_state(record.levels, record.reference_instant, now)
        if state is None:
            return record.cached_current_level
        return state.current_level

    @staticmethod
    def _facts_from(event: ControlEvent) -> Optional[TimingFacts]:
        if not event.data:
            return None
        try:
            facts = TimingFacts.model_validate(event.data)
        except ValidationError as e:
            raise InvalidCommandError(
                "Malformed timing data",
                {"tournamentId": event.tournament_id, "errors": e.error_count()},
            )
        return facts if facts.is_complete else None
