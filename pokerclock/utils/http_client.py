"""Pooled httpx client for the tournament backend.

Only idempotent reads are retried (transport errors and 5xx, exponential
backoff via tenacity). start/resume/PATCH are commands: one attempt, and
the caller decides what a failure means.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


def is_retryable(exc: BaseException) -> bool:
    """Transport failures and server-side (5xx) errors are worth another try."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class AsyncHttpClient:
    """One shared connection pool, opened and closed with the app.

    ```python
    async with AsyncHttpClient(max_retries=3) as http:
        tournament = await http.get_json(f"{base}/42")
    ```
    """

    def __init__(
        self,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_wait_min: float = 0.5,
        retry_wait_max: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            timeout: total per-request timeout (seconds)
            connect_timeout: TCP connect timeout (seconds)
            max_retries: attempts for GET, including the first
            retry_wait_min / retry_wait_max: backoff bounds (seconds)
            transport: custom transport (httpx.MockTransport in tests)
        """
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._max_retries = max_retries
        self._wait = wait_exponential(multiplier=retry_wait_min, min=retry_wait_min, max=retry_wait_max)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncHttpClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("HTTP client is not open; call open() first")
        return self._client

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self.client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """GET with retry.

        Raises:
            httpx.HTTPStatusError: 4xx at once, 5xx after the last attempt
            httpx.TransportError: after the last attempt
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=self._wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self._send("GET", url, **kwargs)
        return response

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self._send("POST", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> httpx.Response:
        return await self._send("PATCH", url, **kwargs)

    async def get_json(self, url: str, **kwargs) -> Any:
        return (await self.get(url, **kwargs)).json()

    async def post_json(self, url: str, data: dict[str, Any] | None = None, **kwargs) -> Any:
        return (await self.post(url, json=data, **kwargs)).json()
