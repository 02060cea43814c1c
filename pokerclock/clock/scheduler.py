"""
Tick Scheduler - per-tournament periodic clock recomputation.

토너먼트마다 1초 주기 태스크 하나를 돌리며 레벨 변경/종료를 감지합니다.

핵심 설계:
─────────────────────────────────────────────────────────────────────────────────

1. 토너먼트당 타이머 하나:
   - start()는 기존 태스크를 동기적으로 cancel() 한 뒤 새 태스크를 설치
   - 태스크 핸들은 ClockRecord.timer_handle 에 보관
   - 루프는 매 주기마다 자신이 여전히 레코드의 핸들인지 확인

2. 매 틱 처리 순서:
   - 레코드 없음 -> 루프 종료
   - 계산 불가(None) -> 이번 틱 건너뜀
   - 종료 -> 레코드 삭제, finish 이벤트, 백엔드에 Completed 통지
   - 레벨 변경 -> update-level 이벤트, 백엔드에 CurrentLevel 통지
   - 항상 timer-sync 발행

3. 장애 격리:
   - 백엔드 통지는 fire-and-forget (게이트웨이가 오류 경계 담당)
   - 틱 하나의 예외는 로그만 남기고 다음 주기에 계속

4. 드리프트 보정:
   - 이벤트 루프 시계(monotonic) 기준 목표 시각까지 슬립

─────────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import contextvars
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pokerclock.logging_config import get_logger, tournament_context
from pokerclock.ws.events import EventType

from .calculator import derive_state
from .gateway import NotificationGateway
from .models import ClockRecord, ControlType, DerivedState, TournamentStatus
from .registry import ClockRegistry

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────────
# 상수 / 타입
# ─────────────────────────────────────────────────────────────────────────────────

DEFAULT_TICK_INTERVAL = 1.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TickOutcome(str, Enum):
    """What one tick did."""

    TICKED = "ticked"
    LEVEL_CHANGED = "level_changed"
    FINISHED = "finished"
    SKIPPED = "skipped"  # insufficient timing data
    MISSING = "missing"  # no registry record


@dataclass
class SchedulerMetrics:
    """스케줄러 메트릭."""

    total_ticks: int = 0
    total_level_ups: int = 0
    total_finished: int = 0
    skipped_ticks: int = 0
    tick_errors: int = 0


def timer_sync_payload(state: DerivedState) -> Dict[str, Any]:
    """Body of the per-second `timer-sync` event."""
    return {
        "currentLevel": state.current_level,
        "timeLeft": state.time_remaining_seconds,
        "status": TournamentStatus.RUNNING.value,
    }


def control_payload(control: ControlType, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Body of a `tournament-control` event."""
    payload: Dict[str, Any] = {"type": control.value}
    if data is not None:
        payload["data"] = data
    return payload


# ─────────────────────────────────────────────────────────────────────────────────
# 스케줄러
# ─────────────────────────────────────────────────────────────────────────────────


class TickScheduler:
    """At-most-one-timer-per-tournament tick loop.

    사용 예:
    ```python
    scheduler = TickScheduler(registry, gateway)
    scheduler.seed(record)        # registry.set + start
    scheduler.stop("T1")          # cancel + registry.delete
    await scheduler.shutdown()
    ```
    """

    def __init__(
        self,
        registry: ClockRegistry,
        gateway: NotificationGateway,
        interval: float = DEFAULT_TICK_INTERVAL,
        clock: Clock = utc_now,
    ):
        """스케줄러 초기화.

        Args:
            registry: 활성 토너먼트 레지스트리
            gateway: 구독자 발행 / 백엔드 통지 게이트웨이
            interval: 틱 주기 (초)
            clock: 현재 UTC 시각 공급자 (테스트에서 교체)
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.registry = registry
        self.gateway = gateway
        self.interval = interval
        self._clock = clock
        self._metrics = SchedulerMetrics()

    def now(self) -> datetime:
        return self._clock()

    # ─────────────────────────────────────────────────────────────────────────────
    # 타이머 관리
    # ─────────────────────────────────────────────────────────────────────────────

    def start(self, tournament_id: str) -> Optional[asyncio.Task]:
        """(Re)start the periodic task for a registered tournament.

        Any live task for the id is cancelled before the new one is
        installed. Returns None when the tournament has no record.
        """
        record = self.registry.get(tournament_id)
        if record is None:
            logger.warning(f"No clock record to start: {tournament_id}")
            return None

        self._cancel(record)
        # 빈 컨텍스트: 루프 로그에 시작한 요청/연결의 바인딩이 남지 않음
        task = asyncio.create_task(
            self._run(tournament_id),
            name=f"clock_tick_{tournament_id}",
            context=contextvars.Context(),
        )
        record.timer_handle = task

        logger.info(
            f"Clock loop started: {tournament_id}, "
            f"level: {record.cached_current_level}, interval: {self.interval}s"
        )
        return task

    def seed(self, record: ClockRecord) -> Optional[asyncio.Task]:
        """Install `record` in the registry and start ticking it."""
        previous = self.registry.set(record.tournament_id, record)
        if previous is not None and previous is not record:
            self._cancel(previous)
        return self.start(record.tournament_id)

    def stop(self, tournament_id: str) -> Optional[ClockRecord]:
        """Cancel the task and remove the record. No-op on a miss."""
        record = self.registry.delete(tournament_id)
        if record is None:
            return None
        self._cancel(record)
        logger.info(f"Clock stopped: {tournament_id}")
        return record

    async def shutdown(self) -> None:
        """Cancel every loop (process stop)."""
        tasks = []
        for record in self.registry:
            handle = record.timer_handle
            self._cancel(record)
            if handle is not None:
                tasks.append(handle)
        self.registry.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"TickScheduler shut down ({len(tasks)} loops cancelled)")

    @staticmethod
    def _cancel(record: ClockRecord) -> None:
        handle = record.timer_handle
        record.timer_handle = None
        if handle is None or handle.done():
            return
        # 자기 자신의 루프 안에서 호출된 경우 루프가 스스로 빠져나감
        if handle is asyncio.current_task():
            return
        handle.cancel()

    # ─────────────────────────────────────────────────────────────────────────────
    # 루프 (핵심)
    # ─────────────────────────────────────────────────────────────────────────────

    async def _run(self, tournament_id: str) -> None:
        with tournament_context(tournament_id):
            await self._loop(tournament_id)

    async def _loop(self, tournament_id: str) -> None:
        me = asyncio.current_task()
        loop = asyncio.get_running_loop()
        next_at = loop.time()

        try:
            while True:
                next_at += self.interval
                delay = next_at - loop.time()
                if delay < -self.interval:
                    # 한 주기 이상 밀렸으면 따라잡지 않고 기준을 다시 잡음
                    next_at = loop.time()
                    delay = 0
                await asyncio.sleep(max(0.0, delay))

                record = self.registry.get(tournament_id)
                if record is None or record.timer_handle is not me:
                    logger.debug(f"Clock loop orphaned, exiting: {tournament_id}")
                    break

                try:
                    outcome = await self.tick(tournament_id)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._metrics.tick_errors += 1
                    logger.error(f"Tick failed: {tournament_id}, {e}")
                    continue

                if outcome in (TickOutcome.FINISHED, TickOutcome.MISSING):
                    break
        except asyncio.CancelledError:
            logger.debug(f"Clock loop cancelled: {tournament_id}")
            raise

        logger.info(f"Clock loop ended: {tournament_id}")

    async def tick(self, tournament_id: str) -> TickOutcome:
        """Run one recomputation-and-publish cycle."""
        record = self.registry.get(tournament_id)
        if record is None:
            return TickOutcome.MISSING

        state = derive_state(record.levels, record.reference_instant, self.now())
        if state is None:
            self._metrics.skipped_ticks += 1
            logger.warning(f"Insufficient timing data, tick skipped: {tournament_id}")
            return TickOutcome.SKIPPED

        if state.finished:
            await self._finish(record)
            return TickOutcome.FINISHED

        outcome = TickOutcome.TICKED
        if state.current_level != record.cached_current_level:
            previous = record.cached_current_level
            if state.current_level < previous:
                logger.warning(
                    f"Level moved backwards: {tournament_id}, {previous} -> {state.current_level}"
                )
            record.cached_current_level = state.current_level
            self._metrics.total_level_ups += 1
            logger.info(f"Level up: {tournament_id}, {previous} -> {state.current_level}")

            await self.gateway.publish(
                tournament_id,
                EventType.TOURNAMENT_CONTROL,
                control_payload(ControlType.UPDATE_LEVEL, {"level": state.current_level}),
            )
            self.gateway.notify_external(tournament_id, {"CurrentLevel": state.current_level})
            outcome = TickOutcome.LEVEL_CHANGED

        await self.gateway.publish(tournament_id, EventType.TIMER_SYNC, timer_sync_payload(state))
        self._metrics.total_ticks += 1
        return outcome

    async def _finish(self, record: ClockRecord) -> None:
        tournament_id = record.tournament_id
        logger.info(f"Tournament finished: {tournament_id}")

        self._cancel(record)
        if self.registry.get(tournament_id) is record:
            self.registry.delete(tournament_id)
        self._metrics.total_finished += 1

        await self.gateway.publish(
            tournament_id,
            EventType.TOURNAMENT_CONTROL,
            control_payload(ControlType.FINISH),
        )
        self.gateway.notify_external(
            tournament_id, {"Status": TournamentStatus.COMPLETED.value}
        )

    # ─────────────────────────────────────────────────────────────────────────────
    # 조회
    # ─────────────────────────────────────────────────────────────────────────────

    def current_state(self, tournament_id: str) -> Optional[DerivedState]:
        """Derived state of a registered tournament right now."""
        record = self.registry.get(tournament_id)
        if record is None:
            return None
        return derive_state(record.levels, record.reference_instant, self.now())

    def get_metrics(self) -> SchedulerMetrics:
        return self._metrics

    def get_status(self) -> Dict[str, Any]:
        """스케줄러 상태 조회."""
        now = self.now()
        clocks = {}
        for record in self.registry:
            state = derive_state(record.levels, record.reference_instant, now)
            clocks[record.tournament_id] = {
                **record.to_dict(),
                "state": state.to_dict() if state else None,
            }
        return {
            "running": self.registry.ids(),
            "activeClocks": len(self.registry),
            "intervalSeconds": self.interval,
            "metrics": {
                "totalTicks": self._metrics.total_ticks,
                "totalLevelUps": self._metrics.total_level_ups,
                "totalFinished": self._metrics.total_finished,
                "skippedTicks": self._metrics.skipped_ticks,
                "tickErrors": self._metrics.tick_errors,
            },
            "clocks": clocks,
        }
