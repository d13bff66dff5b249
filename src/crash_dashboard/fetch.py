"""Rate-limit aware HTTP GET with exponential backoff."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple, Union

import httpx

from .exceptions import (
    FetchError,
    HTTPStatusError,
    InvalidArgumentError,
    MalformedResponseError,
    TooManyAttemptsError,
)
from .logging_config import get_logger

logger = get_logger(__name__)

StatusCallback = Callable[[str], None]
Sleep = Callable[[float], Awaitable[None]]
QueryParams = Union[Sequence[Tuple[str, str]], dict, None]

RATE_LIMITED = 429


def _ignore_status(message: str) -> None:
    pass


class BackoffFetcher:
    """Issue GET requests, retrying with a doubling delay on HTTP 429.

    429 is the only throttling signal the search API sends. Any other status
    of 400 or more is a hard failure, and a body that does not decode as JSON
    is never retried since asking again will not fix it.

    Args:
        client: Optional pre-configured ``httpx.AsyncClient`` (useful for
            testing with ``httpx.MockTransport``). When omitted the fetcher
            creates and owns one.
        status: Callback receiving human-readable progress strings.
        sleep: Coroutine used to wait between attempts, in seconds.
        timeout: Request timeout in seconds for an internally created client.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        status: Optional[StatusCallback] = None,
        sleep: Optional[Sleep] = None,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._status = status or _ignore_status
        self._sleep = sleep or asyncio.sleep

    async def fetch(
        self,
        url: str,
        initial_delay_ms: float,
        max_attempts: int,
        params: QueryParams = None,
    ) -> Any:
        """Fetch *url* and return its decoded JSON body.

        Raises:
            InvalidArgumentError: ``max_attempts < 1`` or ``initial_delay_ms < 0``.
            TooManyAttemptsError: The server rate limited every attempt.
            HTTPStatusError: Any other status >= 400.
            MalformedResponseError: The body is not JSON.
            FetchError: The request never reached the server.
        """
        if max_attempts < 1:
            raise InvalidArgumentError("max_attempts", max_attempts, "must be at least 1")
        if initial_delay_ms < 0:
            raise InvalidArgumentError("initial_delay_ms", initial_delay_ms, "must be non-negative")

        delay = initial_delay_ms
        attempts = max_attempts
        while True:
            self._status(f"Fetching {url} ({attempts} attempt(s) remaining)")
            start = time.perf_counter()
            try:
                response = await self._client.get(url, params=params)
            except httpx.TransportError as exc:
                logger.error("Request to %s failed: %s", url, exc)
                raise FetchError(url, str(exc)) from exc
            elapsed = time.perf_counter() - start

            if response.status_code == RATE_LIMITED:
                attempts -= 1
                logger.warning(
                    "Rate limited by %s after %.2fs; %d attempt(s) remaining",
                    url,
                    elapsed,
                    attempts,
                )
                if attempts <= 0:
                    self._status(f"Giving up on {url}: too many attempts")
                    raise TooManyAttemptsError(url, max_attempts, last_status=RATE_LIMITED)
                self._status(f"Waiting {int(delay)} ms to avoid rate limiting")
                await self._sleep(delay / 1000)
                self._status(f"Done waiting {int(delay)} ms, retrying")
                delay *= 2
                continue

            if response.status_code >= 400:
                logger.error("HTTP %s from %s after %.2fs", response.status_code, url, elapsed)
                raise HTTPStatusError(url, response.status_code, response.text)

            try:
                payload = response.json()
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                logger.error("Response from %s was not valid JSON: %s", url, exc)
                raise MalformedResponseError(url, response.text) from exc

            logger.debug(
                "Fetched %s in %.2fs (status %s)", url, elapsed, response.status_code
            )
            return payload

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BackoffFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
