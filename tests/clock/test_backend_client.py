"""Tests for TournamentBackendClient over httpx.MockTransport."""

import httpx
import pytest

from pokerclock.clock.backend_client import TournamentBackendClient
from pokerclock.utils.http_client import AsyncHttpClient
from pokerclock.utils.json_utils import json_loads

BASE_URL = "http://backend.test/api/Tournaments"

TOURNAMENT_JSON = {
    "id": 7,
    "name": "Sunday Major",
    "startTime": "2025-01-01T12:00:00.1234567Z",
    "status": "Running",
    "currentLevel": 2,
    "levels": [
        {"levelNumber": 2, "durationSeconds": 900, "smallBlind": 200, "bigBlind": 400},
        {"levelNumber": 1, "durationSeconds": 900, "smallBlind": 100, "bigBlind": 200},
    ],
}


class Recorder:
    """Captures requests and serves canned responses."""

    def __init__(self, responder):
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


async def make_client(responder) -> tuple[TournamentBackendClient, AsyncHttpClient, Recorder]:
    recorder = Recorder(responder)
    http = AsyncHttpClient(max_retries=1, transport=httpx.MockTransport(recorder))
    await http.open()
    return TournamentBackendClient(BASE_URL + "/", http), http, recorder


class TestGetTournament:
    @pytest.mark.asyncio
    async def test_parses_backend_record(self):
        client, http, recorder = await make_client(
            lambda req: httpx.Response(200, json=TOURNAMENT_JSON)
        )
        try:
            snapshot = await client.get_tournament("7")
        finally:
            await http.close()

        assert str(recorder.requests[0].url) == f"{BASE_URL}/7"
        assert snapshot.id == "7"
        assert snapshot.is_running
        assert snapshot.current_level == 2
        assert snapshot.start_time.microsecond == 123456
        assert [lvl.level_number for lvl in snapshot.domain_levels()] == [2, 1]

    @pytest.mark.asyncio
    async def test_not_found(self):
        client, http, _ = await make_client(lambda req: httpx.Response(404))
        try:
            assert await client.get_tournament("404") is None
        finally:
            await http.close()

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        bad = {**TOURNAMENT_JSON, "levels": [{"levelNumber": "x"}]}
        client, http, _ = await make_client(lambda req: httpx.Response(200, json=bad))
        try:
            assert await client.get_tournament("7") is None
        finally:
            await http.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client, http, _ = await make_client(
            lambda req: httpx.Response(200, content=b"<html>oops</html>")
        )
        try:
            assert await client.get_tournament("7") is None
        finally:
            await http.close()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, http, _ = await make_client(refuse)
        try:
            assert await client.get_tournament("7") is None
        finally:
            await http.close()


class TestCommands:
    @pytest.mark.asyncio
    async def test_start_posts_to_start_endpoint(self):
        client, http, recorder = await make_client(
            lambda req: httpx.Response(200, json=TOURNAMENT_JSON)
        )
        try:
            snapshot = await client.start_tournament("7")
        finally:
            await http.close()

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/7/start"
        assert snapshot.is_complete

    @pytest.mark.asyncio
    async def test_resume_posts_to_resume_endpoint(self):
        client, http, recorder = await make_client(
            lambda req: httpx.Response(200, json=TOURNAMENT_JSON)
        )
        try:
            await client.resume_tournament("7")
        finally:
            await http.close()

        assert str(recorder.requests[0].url) == f"{BASE_URL}/7/resume"

    @pytest.mark.asyncio
    async def test_start_rejected(self):
        client, http, _ = await make_client(lambda req: httpx.Response(409))
        try:
            assert await client.start_tournament("7") is None
        finally:
            await http.close()


class TestPatch:
    @pytest.mark.asyncio
    async def test_patch_sends_json_body(self):
        client, http, recorder = await make_client(lambda req: httpx.Response(204))
        try:
            ok = await client.patch_tournament("7", {"Status": "Paused"})
        finally:
            await http.close()

        request = recorder.requests[0]
        assert ok is True
        assert request.method == "PATCH"
        assert json_loads(request.content) == {"Status": "Paused"}

    @pytest.mark.asyncio
    async def test_patch_failure_returns_false(self):
        client, http, recorder = await make_client(lambda req: httpx.Response(500))
        try:
            ok = await client.patch_tournament("7", {"CurrentLevel": 3})
        finally:
            await http.close()

        assert ok is False
        assert len(recorder.requests) == 1
