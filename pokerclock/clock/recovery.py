"""
Recovery Resolver.

서버 재시작 후 등록되지 않은 토너먼트의 시계를 백엔드 데이터만으로 복구합니다.

Gate: status == running (case-insensitive), a valid start instant and a
non-empty level list. Anything else yields None and starts nothing.
"""

from __future__ import annotations

from typing import Optional

from pokerclock.logging_config import get_logger

from .backend_client import TournamentBackendClient
from .models import ClockRecord
from .registry import ClockRegistry
from .scheduler import TickScheduler
from .schemas import TimingFacts, TournamentSnapshot

logger = get_logger(__name__)


def record_from_facts(tournament_id: str, facts: TimingFacts) -> Optional[ClockRecord]:
    """Build a ClockRecord from timing facts; None when they are incomplete."""
    if not facts.is_complete:
        return None
    return ClockRecord(
        tournament_id=tournament_id,
        reference_instant=facts.start_time,
        levels=facts.domain_levels(),
        cached_current_level=facts.current_level or 1,
    )


class RecoveryResolver:
    """Re-seeds clocks from the durable tournament record."""

    def __init__(
        self,
        registry: ClockRegistry,
        backend: TournamentBackendClient,
        scheduler: TickScheduler,
    ):
        self.registry = registry
        self.backend = backend
        self.scheduler = scheduler

    async def recover(self, tournament_id: str) -> Optional[ClockRecord]:
        """Fetch, gate and seed. Returns the live record or None."""
        existing = self.registry.get(tournament_id)
        if existing is not None:
            return existing

        generation = self.registry.generation(tournament_id)
        snapshot = await self.backend.get_tournament(tournament_id)
        if snapshot is None:
            logger.info(f"Recovery skipped, tournament unavailable: {tournament_id}")
            return None

        if not self._recoverable(tournament_id, snapshot):
            return None

        # fetch 도중 다른 경로(start/resume)가 먼저 시드했을 수 있음
        existing = self.registry.get(tournament_id)
        if existing is not None:
            logger.debug(f"Record appeared during recovery, keeping it: {tournament_id}")
            return existing

        if self.registry.generation(tournament_id) != generation:
            # fetch 도중 pause/finish 가 들어옴: 그 명령이 우선
            logger.info(f"Recovery superseded by a newer command: {tournament_id}")
            return None

        record = record_from_facts(tournament_id, snapshot)
        self.scheduler.seed(record)
        logger.info(
            f"Clock recovered: {tournament_id}, "
            f"start: {record.reference_instant.isoformat()}, "
            f"level: {record.cached_current_level}, levels: {len(record.levels)}"
        )
        return record

    async def ensure(self, tournament_id: str) -> Optional[ClockRecord]:
        """Registry hit or recovery."""
        record = self.registry.get(tournament_id)
        if record is not None:
            return record
        return await self.recover(tournament_id)

    @staticmethod
    def _recoverable(tournament_id: str, snapshot: TournamentSnapshot) -> bool:
        if not snapshot.is_running:
            logger.info(
                f"Recovery skipped, status is {snapshot.status!r}: {tournament_id}"
            )
            return False
        if snapshot.start_time is None:
            logger.warning(f"Recovery skipped, no valid start time: {tournament_id}")
            return False
        if not snapshot.levels:
            logger.warning(f"Recovery skipped, no levels: {tournament_id}")
            return False
        return True
