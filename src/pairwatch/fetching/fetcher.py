"""
Resilient HTTP fetching with rate limiting and exponential backoff.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from pairwatch.fetching.rate_limiter import TokenBucketLimiter

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
BASE_DELAY_MS = 1000
REQUEST_TIMEOUT_SECONDS = 15.0

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (compatible; PairWatch/1.0)",
}


class FetchError(Exception):
    """Raised when a request failed on every attempt."""

    def __init__(
        self,
        url: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.cause = cause
        self.status_code = status_code
        super().__init__(f"Fetch failed for {url}: {cause}")


class RateLimitedError(FetchError):
    """The final attempt was answered with HTTP 429."""


class Fetcher:
    """
    HTTP JSON fetcher shared by all upstream API wrappers.

    ## Parameters
    - `client`: Optional preconfigured `httpx.AsyncClient` (tests pass one
      built on `httpx.MockTransport`)
    - `base_delay_ms`: Backoff base; attempt `n` (0-based) waits
      `base_delay_ms * 2**n` before the next attempt
    - `sleep`: Coroutine used for backoff waits (injectable for tests)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_delay_ms: int = BASE_DELAY_MS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout, headers=headers or DEFAULT_HEADERS
        )
        self.base_delay_ms = base_delay_ms
        self.timeout = timeout
        self.headers = headers or DEFAULT_HEADERS
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def fetch_json(
        self,
        url: str,
        limiter: TokenBucketLimiter,
        max_attempts: int = MAX_ATTEMPTS,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Fetch `url` and decode the JSON body.

        ## Behaviour
        Each attempt takes one permit from `limiter`, then issues the
        request with the fixed timeout and default headers. Any non-2xx
        status, transport error, timeout or undecodable body counts as a
        failed attempt.

        ## Raises
        - `RateLimitedError` if the last attempt got HTTP 429
        - `FetchError` for any other final failure
        """
        last_error: Optional[BaseException] = None
        last_status: Optional[int] = None

        for attempt in range(max_attempts):
            await limiter.acquire()
            try:
                response = await self.client.get(
                    url, params=params, headers=self.headers, timeout=self.timeout
                )
                last_status = response.status_code
                response.raise_for_status()
                data = response.json()
                logger.debug(f"GET {url} -> {response.status_code}")
                return data

            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                if not isinstance(e, httpx.HTTPStatusError):
                    last_status = None

                if attempt == max_attempts - 1:
                    logger.error(
                        f"GET {url} failed after {max_attempts} attempts: {e}"
                    )
                    break

                delay_ms = self.base_delay_ms * (2**attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{max_attempts - 1} for {url}: {e}. "
                    f"Waiting {delay_ms}ms"
                )
                await self._sleep(delay_ms / 1000)

        if last_status == 429:
            raise RateLimitedError(url, last_error, last_status)
        raise FetchError(url, last_error, last_status)
