"""Resilient HTTP fetcher: per-attempt deadline, retry classification, backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from bpdash.errors import HTTPStatusFailure, ResponseError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15000

# Longest non-JSON body that is surfaced verbatim as the error message.
_MAX_TEXT_ERROR_LEN = 120

NO_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

# Transport failures worth another attempt: deadline expiry, connect /
# read / write errors (refused, reset, DNS) and dropped connections.
RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff schedule for one logical request.

    Attributes:
        retries: Extra attempts after the first one.
        delay_ms: Wait before the first retry.
        backoff_factor: Multiplier applied to the wait for each later retry.
        retry_statuses: HTTP statuses treated as transient.
    """

    retries: int = 2
    delay_ms: float = 300
    backoff_factor: float = 2
    retry_statuses: tuple[int, ...] = (408, 425, 429, 500, 502, 503, 504)

    def delay_for(self, attempt: int) -> float:
        """Return the wait in seconds after the failed *attempt* (0-based)."""
        return self.delay_ms * self.backoff_factor**attempt / 1000


DEFAULT_RETRY_POLICY = RetryPolicy()


def open_client() -> httpx.AsyncClient:
    """Create the async HTTP client shared by the probes of one poll.

    httpx timeouts are disabled; each attempt is bounded by the
    ``timeout_ms`` deadline of ``fetch_with_retry`` instead.
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=None,
        headers={"User-Agent": "bpdash", "Accept": "application/json"},
    )


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = asyncio.sleep,
    **request_kwargs: object,
) -> httpx.Response:
    """Perform one HTTP request, retrying transient failures.

    The deadline applies to each attempt separately, so every retry gets
    a fresh *timeout_ms* window.  Non-retryable statuses fail at once
    without consuming the retry budget.

    Args:
        client: HTTP client to send the request with.
        method: HTTP method (``"GET"``, ``"POST"``).
        url: Target URL.
        timeout_ms: Per-attempt deadline in milliseconds.
        policy: Retry budget and backoff schedule.
        sleep: Coroutine used to wait between attempts.
        **request_kwargs: Passed through to ``client.request``.

    Returns:
        The first response with a 2xx status.

    Raises:
        HTTPStatusFailure: On a non-retryable status, or a retryable one
            once the budget is exhausted.
        TimeoutError, httpx.TransportError: The last transport failure
            once the budget is exhausted, or a non-retryable one.
    """
    headers = {**NO_CACHE_HEADERS, **dict(request_kwargs.pop("headers", None) or {})}

    for attempt in range(policy.retries + 1):
        has_budget = attempt < policy.retries
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await client.request(
                    method, url, headers=headers, **request_kwargs
                )
        except RETRYABLE_EXCEPTIONS as exc:
            if not has_budget:
                raise
            logger.debug(
                "%s %s failed (%s), retry %d/%d",
                method, url, type(exc).__name__, attempt + 1, policy.retries,
            )
        else:
            if response.is_success:
                return response
            if response.status_code not in policy.retry_statuses or not has_budget:
                raise HTTPStatusFailure(response.status_code)
            logger.debug(
                "%s %s returned HTTP %d, retry %d/%d",
                method, url, response.status_code, attempt + 1, policy.retries,
            )
        await sleep(policy.delay_for(attempt))

    raise AssertionError("retry loop exited without a result")


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = asyncio.sleep,
    **request_kwargs: object,
) -> object:
    """Fetch *url* with retries and decode the body as JSON.

    Raises:
        ResponseError: If the body is not JSON.  Short plain-text bodies
            become the error message; anything else is reported as
            ``"Unexpected response"``.
    """
    response = await fetch_with_retry(
        client,
        method,
        url,
        timeout_ms=timeout_ms,
        policy=policy,
        sleep=sleep,
        **request_kwargs,
    )
    try:
        return response.json()
    except ValueError:
        trimmed = response.text.strip()
        if trimmed and len(trimmed) <= _MAX_TEXT_ERROR_LEN:
            raise ResponseError(trimmed) from None
        raise ResponseError("Unexpected response") from None
