"""
Clock Engine.

Wires calculator, registry, scheduler, recovery, gateway and commands
around one ConnectionManager and one backend HTTP client, and owns their
lifecycle. One instance per process, stored on `app.state.engine`.
"""

from __future__ import annotations

from typing import Optional

import httpx

from pokerclock.config import Settings
from pokerclock.logging_config import get_logger
from pokerclock.utils.http_client import AsyncHttpClient
from pokerclock.ws.displays import DisplayDirectory
from pokerclock.ws.manager import ConnectionManager

from .backend_client import TournamentBackendClient
from .commands import CommandSurface
from .gateway import NotificationGateway
from .recovery import RecoveryResolver
from .registry import ClockRegistry
from .scheduler import Clock, TickScheduler, utc_now

logger = get_logger(__name__)


class ClockEngine:
    """Process-wide container of the clock components."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = utc_now,
    ):
        self.settings = settings

        self.http = AsyncHttpClient(
            timeout=settings.backend_timeout_seconds,
            connect_timeout=settings.backend_connect_timeout_seconds,
            max_retries=settings.backend_max_retries,
            transport=transport,
        )
        self.backend = TournamentBackendClient(settings.backend_api_url, self.http)

        self.manager = ConnectionManager()
        self.displays = DisplayDirectory(code_length=settings.display_code_length)

        self.registry = ClockRegistry()
        self.gateway = NotificationGateway(
            self.manager,
            self.backend,
            notify_timeout=settings.backend_timeout_seconds,
        )
        self.scheduler = TickScheduler(
            self.registry,
            self.gateway,
            interval=settings.tick_interval_seconds,
            clock=clock,
        )
        self.resolver = RecoveryResolver(self.registry, self.backend, self.scheduler)
        self.commands = CommandSurface(
            self.registry,
            self.scheduler,
            self.gateway,
            self.backend,
            self.resolver,
        )

    async def start(self) -> None:
        await self.http.open()
        logger.info(
            f"Clock engine started (backend: {self.settings.backend_api_url}, "
            f"tick: {self.settings.tick_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Cancel timers, flush notifications, close sockets and HTTP."""
        await self.scheduler.shutdown()
        await self.gateway.drain()
        await self.manager.close_all()
        await self.http.close()
        logger.info("Clock engine stopped")
