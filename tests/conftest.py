"""Shared test fixtures and fakes."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio

from pokerclock.clock.commands import CommandSurface
from pokerclock.clock.gateway import NotificationGateway
from pokerclock.clock.models import ClockRecord, Level
from pokerclock.clock.recovery import RecoveryResolver
from pokerclock.clock.registry import ClockRegistry
from pokerclock.clock.scheduler import TickScheduler
from pokerclock.clock.schemas import TournamentSnapshot
from pokerclock.utils.json_utils import json_loads
from pokerclock.ws.connection import WebSocketConnection, tournament_channel
from pokerclock.ws.manager import ConnectionManager

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Mock Classes
# =============================================================================


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, fail_send: bool = False):
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.fail_send = fail_send
        self.sent_messages: list[dict[str, Any]] = []
        self.receive_queue: asyncio.Queue[str] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    async def send_text(self, data: str) -> None:
        if self.closed or self.fail_send:
            raise RuntimeError("WebSocket closed")
        self.sent_messages.append(json_loads(data))

    async def receive_text(self) -> str:
        return await self.receive_queue.get()

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent_messages if m["type"] == event_type]


class FakeBackend:
    """In-memory stand-in for TournamentBackendClient."""

    def __init__(self):
        self.tournaments: dict[str, TournamentSnapshot] = {}
        self.start_results: dict[str, TournamentSnapshot] = {}
        self.resume_results: dict[str, TournamentSnapshot] = {}
        self.patches: list[tuple[str, dict[str, Any]]] = []
        self.get_calls: list[str] = []
        self.start_calls: list[str] = []
        self.resume_calls: list[str] = []
        self.patch_error: Exception | None = None
        self.on_get = None  # optional hook run during a fetch
        self.gate: asyncio.Event | None = None  # holds calls in flight until set

    async def _wait_gate(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def get_tournament(self, tournament_id: str) -> TournamentSnapshot | None:
        self.get_calls.append(tournament_id)
        if self.on_get is not None:
            self.on_get(tournament_id)
        await self._wait_gate()
        return self.tournaments.get(tournament_id)

    async def start_tournament(self, tournament_id: str) -> TournamentSnapshot | None:
        self.start_calls.append(tournament_id)
        await self._wait_gate()
        return self.start_results.get(tournament_id)

    async def resume_tournament(self, tournament_id: str) -> TournamentSnapshot | None:
        self.resume_calls.append(tournament_id)
        await self._wait_gate()
        return self.resume_results.get(tournament_id)

    async def patch_tournament(self, tournament_id: str, patch: dict[str, Any]) -> bool:
        if self.patch_error is not None:
            raise self.patch_error
        self.patches.append((tournament_id, patch))
        return True


# =============================================================================
# Builders
# =============================================================================


def make_snapshot(
    tournament_id: str = "T1",
    status: str = "Running",
    start_time: datetime | str | None = T0,
    levels: list[tuple[int, int]] | None = None,
    current_level: int | None = 1,
) -> TournamentSnapshot:
    """Backend payload as the .NET API sends it (camelCase)."""
    if levels is None:
        levels = [(1, 60)]
    if isinstance(start_time, datetime):
        start_time = start_time.isoformat()
    return TournamentSnapshot.model_validate(
        {
            "id": tournament_id,
            "name": f"Tournament {tournament_id}",
            "status": status,
            "startTime": start_time,
            "currentLevel": current_level,
            "levels": [
                {"levelNumber": n, "durationSeconds": d, "smallBlind": 100 * n}
                for n, d in levels
            ],
        }
    )


def make_record(
    tournament_id: str = "T1",
    start_time: datetime = T0,
    levels: list[tuple[int, int]] | None = None,
    cached_level: int = 1,
) -> ClockRecord:
    if levels is None:
        levels = [(1, 60)]
    return ClockRecord(
        tournament_id=tournament_id,
        reference_instant=start_time,
        levels=tuple(Level(n, d) for n, d in levels),
        cached_current_level=cached_level,
    )


async def add_subscriber(
    manager: ConnectionManager,
    tournament_id: str | None = "T1",
    websocket: MockWebSocket | None = None,
) -> tuple[WebSocketConnection, MockWebSocket]:
    """Register a connection and (optionally) subscribe it to a tournament."""
    websocket = websocket or MockWebSocket()
    conn = WebSocketConnection(
        websocket=websocket,
        connection_id=str(uuid4()),
        connected_at=datetime.now(timezone.utc),
    )
    await manager.connect(conn)
    if tournament_id is not None:
        await manager.subscribe(conn.connection_id, tournament_channel(tournament_id))
    return conn, websocket


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def registry() -> ClockRegistry:
    return ClockRegistry()


@pytest.fixture
def gateway(manager: ConnectionManager, backend: FakeBackend) -> NotificationGateway:
    return NotificationGateway(manager, backend, notify_timeout=1.0)


@pytest_asyncio.fixture
async def scheduler(
    registry: ClockRegistry,
    gateway: NotificationGateway,
    fake_clock: FakeClock,
) -> TickScheduler:
    """Scheduler whose loop never fires on its own; tests call tick()."""
    scheduler = TickScheduler(registry, gateway, interval=3600, clock=fake_clock)
    yield scheduler
    await scheduler.shutdown()
    await gateway.drain()


@pytest.fixture
def resolver(
    registry: ClockRegistry,
    backend: FakeBackend,
    scheduler: TickScheduler,
) -> RecoveryResolver:
    return RecoveryResolver(registry, backend, scheduler)


@pytest.fixture
def commands(
    registry: ClockRegistry,
    scheduler: TickScheduler,
    gateway: NotificationGateway,
    backend: FakeBackend,
    resolver: RecoveryResolver,
) -> CommandSurface:
    return CommandSurface(registry, scheduler, gateway, backend, resolver)
