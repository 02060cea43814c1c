"""Client for the authoritative tournament backend.

Every call degrades to None/False on failure; callers treat that as
"no update this round". Nothing here raises into the tick loop.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from pokerclock.logging_config import get_logger
from pokerclock.utils.http_client import AsyncHttpClient

from .schemas import TournamentSnapshot

logger = get_logger(__name__)


class TournamentBackendClient:
    """GET / PATCH / POST against `{base_url}/{tournament_id}`."""

    def __init__(self, base_url: str, http: AsyncHttpClient):
        self._base_url = base_url.rstrip("/")
        self._http = http

    def _url(self, tournament_id: str, action: str | None = None) -> str:
        url = f"{self._base_url}/{tournament_id}"
        return f"{url}/{action}" if action else url

    async def get_tournament(self, tournament_id: str) -> Optional[TournamentSnapshot]:
        """Fetch the durable record; None on 404, error or bad payload."""
        logger.debug(f"Fetching tournament {tournament_id}")
        try:
            data = await self._http.get_json(self._url(tournament_id))
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Backend returned {e.response.status_code} for tournament {tournament_id}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Backend fetch failed for tournament {tournament_id}: {e}")
            return None
        return self._parse(tournament_id, data)

    async def start_tournament(self, tournament_id: str) -> Optional[TournamentSnapshot]:
        """Ask the backend to start the tournament; returns fresh timing facts."""
        return await self._command(tournament_id, "start")

    async def resume_tournament(self, tournament_id: str) -> Optional[TournamentSnapshot]:
        """Ask the backend to resume; it returns a start instant shifted by the pause."""
        return await self._command(tournament_id, "resume")

    async def patch_tournament(self, tournament_id: str, patch: Dict[str, Any]) -> bool:
        """Single-attempt PATCH. False on any failure."""
        try:
            await self._http.patch(self._url(tournament_id), json=patch)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Backend PATCH {patch} for {tournament_id} rejected: "
                f"{e.response.status_code}"
            )
            return False
        except httpx.HTTPError as e:
            logger.error(f"Backend PATCH {patch} for {tournament_id} failed: {e}")
            return False
        return True

    async def _command(self, tournament_id: str, action: str) -> Optional[TournamentSnapshot]:
        logger.info(f"Backend {action} requested for tournament {tournament_id}")
        try:
            data = await self._http.post_json(self._url(tournament_id, action))
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Backend {action} for {tournament_id} returned {e.response.status_code}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Backend {action} for {tournament_id} failed: {e}")
            return None
        return self._parse(tournament_id, data)

    @staticmethod
    def _parse(tournament_id: str, data: Any) -> Optional[TournamentSnapshot]:
        try:
            return TournamentSnapshot.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"Malformed tournament payload for {tournament_id}: "
                f"{e.error_count()} error(s)"
            )
            return None
