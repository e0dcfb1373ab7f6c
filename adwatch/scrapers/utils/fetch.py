"""Shared HTTP fetching with retry and exponential backoff.

Every extractor goes through a Fetcher. Each attempt gets a fresh random
User-Agent and a bounded timeout; timeouts, connection errors, 429 and 5xx
are retried after 2 ** attempt seconds (1s, 2s, ...), other 4xx fail at
once. The fetcher knows nothing about the response body, callers interpret it.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from adwatch.config import settings
from adwatch.core.exceptions import MalformedResponseError, TransientNetworkError
from adwatch.scrapers.utils.user_agents import get_user_agent


logger = structlog.get_logger(__name__)


DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
}

JSON_HEADERS: Dict[str, str] = {
    "Accept": "application/json",
    "Accept-Language": "ru-RU,ru;q=0.9",
}


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, connection errors, 429 and 5xx are worth another attempt.

    Other 4xx responses will not change on retry and fail at once.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


class Fetcher:
    """HTTP GET with retry, User-Agent rotation and timeouts.

    Args:
        platform: Platform identifier used for error context and logs
        timeout: Per-attempt timeout in seconds
        max_attempts: Default number of attempts per fetch
        transport: Optional httpx transport (tests inject httpx.MockTransport)
        sleep: Coroutine used between attempts (tests inject a no-op)
    """

    def __init__(
        self,
        platform: str,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self.max_attempts = max_attempts if max_attempts is not None else settings.FETCH_MAX_ATTEMPTS
        self._transport = transport
        self._sleep = sleep
        self.logger = logger.bind(platform=platform)

    async def fetch_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        max_attempts: Optional[int] = None,
    ) -> httpx.Response:
        """GET a URL, retrying network failures, 429 and 5xx responses.

        Returns:
            The successful httpx.Response

        Raises:
            TransientNetworkError: All attempts failed; chained to the last error
        """
        attempts = max_attempts or self.max_attempts
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, exp_base=2, min=1),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get(url, params, headers)
        except httpx.HTTPError as e:
            self.logger.error(
                "fetch_failed",
                url=url,
                attempts=attempts,
                error=str(e),
            )
            raise TransientNetworkError(self.platform, f"fetch failed: {e}", url=url) from e

        return response

    async def fetch_text(self, url: str, **kwargs) -> str:
        """Fetch a URL and return the decoded body."""
        response = await self.fetch_with_retry(url, **kwargs)
        return response.text

    async def fetch_json(self, url: str, **kwargs) -> Any:
        """Fetch a URL and decode its JSON body.

        Raises:
            MalformedResponseError: Body is not valid JSON (not retried)
        """
        kwargs.setdefault("headers", JSON_HEADERS)
        response = await self.fetch_with_retry(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                self.platform, f"response is not JSON: {e}", url=url
            ) from e

    async def _get(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
    ) -> httpx.Response:
        request_headers = {**DEFAULT_HEADERS, **(headers or {})}
        request_headers["User-Agent"] = get_user_agent()

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(url, params=params, headers=request_headers)

            if response.status_code == 429:
                self.logger.warning("upstream_rate_limit_hit", url=url)

            response.raise_for_status()
            return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "fetch_attempt_failed",
            attempt=retry_state.attempt_number,
            next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )
