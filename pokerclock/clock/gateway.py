"""
Fan-out / Notification Gateway.

Two outbound paths used by the scheduler, the recovery resolver and the
command surface:

1. publish(): tournament channel fan-out over the WebSocket ConnectionManager.
   At-most-once per subscriber, no ack, no retry. Channel order follows
   call order.
2. notify_external(): best-effort PATCH to the backend, run as a background
   task with its own error boundary. Never awaited by the tick loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set

from pokerclock.logging_config import get_logger
from pokerclock.ws.connection import tournament_channel
from pokerclock.ws.events import EventType
from pokerclock.ws.manager import ConnectionManager
from pokerclock.ws.messages import MessageEnvelope

from .backend_client import TournamentBackendClient

logger = get_logger(__name__)


class NotificationGateway:
    """Publishes clock events to subscribers and patches the backend."""

    def __init__(
        self,
        manager: ConnectionManager,
        backend: TournamentBackendClient,
        notify_timeout: float = 10.0,
    ):
        self.manager = manager
        self.backend = backend
        self._notify_timeout = notify_timeout
        self._pending: Set[asyncio.Task] = set()

    async def publish(
        self,
        tournament_id: str,
        event: EventType | str,
        payload: Any,
        exclude_connection: Optional[str] = None,
    ) -> int:
        """Send `event` to every subscriber of the tournament channel.

        Returns the number of connections reached; 0 on failure.
        """
        message = MessageEnvelope.create(event, payload).to_dict()
        try:
            return await self.manager.broadcast_to_channel(
                tournament_channel(tournament_id),
                message,
                exclude_connection=exclude_connection,
            )
        except Exception as e:
            logger.error(f"Publish {message['type']} to {tournament_id} failed: {e}")
            return 0

    async def send_to(
        self,
        connection_id: str,
        event: EventType | str,
        payload: Any,
        trace_id: Optional[str] = None,
    ) -> bool:
        """Directed message to one connection (initial sync on join)."""
        message = MessageEnvelope.create(event, payload, trace_id=trace_id).to_dict()
        return await self.manager.send_to_connection(connection_id, message)

    def notify_external(self, tournament_id: str, patch: Dict[str, Any]) -> asyncio.Task:
        """Fire-and-forget PATCH. Returns the background task."""
        task = asyncio.create_task(
            self._notify(tournament_id, patch),
            name=f"notify_{tournament_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _notify(self, tournament_id: str, patch: Dict[str, Any]) -> bool:
        try:
            ok = await asyncio.wait_for(
                self.backend.patch_tournament(tournament_id, patch),
                timeout=self._notify_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Backend notify timed out: {tournament_id} {patch}")
            return False
        except Exception as e:
            logger.error(f"Backend notify failed: {tournament_id} {patch}: {e}")
            return False
        if not ok:
            logger.warning(f"Backend notify not applied: {tournament_id} {patch}")
        return ok

    @property
    def pending_notifications(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
