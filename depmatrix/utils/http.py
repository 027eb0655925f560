"""
HTTP client utilities for depmatrix.

This module provides an asynchronous HTTP client for the GitHub REST API
with retry logic, rate limiting, concurrency control, bearer-token
authentication and GitHub-specific error mapping.

``304 Not Modified`` is a successful outcome here: it is handed back to
the caller, which owns the conditional-request cache.
"""

from __future__ import annotations

import time
import httpx
import random
import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

from depmatrix.utils.logger import get_logger
from depmatrix.__version__ import __version__
from depmatrix.exceptions import (
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteError,
)
from depmatrix.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    GITHUB_ACCEPT,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")

#: Returns the credential to send with the next request, if any.
TokenProvider = Callable[[], Optional[str]]


class HTTPClient:
    """Asynchronous GitHub API client with retries and concurrency control.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Maximum number of retry attempts.
        rate_limit_delay: Minimum delay (seconds) between requests.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        max_concurrency: Maximum number of concurrent requests.
        token_provider: Called before every request; a returned token is
            sent as ``Authorization: Bearer <token>``.

    Example:
        >>> async with HTTPClient(token_provider=tokens.get) as client:
        ...     response = await client.get("https://api.github.com/repos/o/r/tags")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rate_limit_delay: float = 0.0,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        token_provider: Optional[TokenProvider] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit_delay = rate_limit_delay
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.max_concurrency = max_concurrency
        self.token_provider = token_provider

        self._client: Optional[httpx.AsyncClient] = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._max_429_retries: int = 5

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> None:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": GITHUB_ACCEPT,
                },
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _rate_limit(self) -> None:
        """Enforce a minimum delay between outgoing requests."""
        if self.rate_limit_delay <= 0:
            return

        async with self._rate_limit_lock:
            now = time.time()
            elapsed = now - self._last_request_time

            if elapsed < self.rate_limit_delay:
                delay = self.rate_limit_delay - elapsed
                self._last_request_time = now + delay
                await asyncio.sleep(delay)
            else:
                self._last_request_time = now

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with retry and backoff logic.

        Raises:
            NotFoundError: The server answered 404.
            RateLimitError: The credential's quota is exhausted.
            RemoteError: Any other unsuccessful status.
            NetworkError: Transport failures persisted across all attempts.
        """
        await self._ensure_client()
        assert self._client is not None

        clean_url = url.strip().strip("\"'")
        last_exc: Optional[Exception] = None
        last_response: Optional[httpx.Response] = None
        retry_429_count = 0

        for attempt in range(self.max_retries + 1):
            request_headers = {**self._auth_headers(), **(headers or {})}
            try:
                await self._rate_limit()

                async with self._semaphore:
                    response = await self._client.request(
                        method, clean_url, headers=request_headers, **kwargs
                    )

                if response.status_code == 429:
                    retry_429_count += 1
                    if retry_429_count > self._max_429_retries:
                        raise RateLimitError(
                            f"Rate limit exceeded after {self._max_429_retries} retries",
                            url=clean_url,
                            status_code=429,
                            response_body=response.text,
                        )
                    last_response = response
                    last_exc = None
                    retry_after = _retry_after(response, fallback=2**attempt)
                    logger.warning(
                        "Rate limited (429), retrying after %.0fs (%d/%d)",
                        retry_after,
                        retry_429_count,
                        self._max_429_retries,
                    )
                    await asyncio.sleep(retry_after)
                    continue

                if response.status_code == 404:
                    raise NotFoundError(
                        f"Resource not found: {clean_url}",
                        url=clean_url,
                        status_code=404,
                        response_body=response.text,
                    )

                if response.status_code == 403 and _quota_exhausted(response):
                    raise RateLimitError(
                        "GitHub API rate limit exhausted"
                        f" (resets at {response.headers.get('X-RateLimit-Reset', '?')});"
                        " set a token to raise the limit",
                        url=clean_url,
                        status_code=403,
                        response_body=response.text,
                    )

                if 400 <= response.status_code < 500:
                    raise RemoteError(
                        f"HTTP {response.status_code} error for {clean_url}",
                        url=clean_url,
                        status_code=response.status_code,
                        response_body=response.text,
                    )

                if response.status_code >= 500:
                    last_response = response
                    last_exc = None
                    logger.warning(
                        "HTTP %d error (%d/%d): %s",
                        response.status_code,
                        attempt + 1,
                        self.max_retries + 1,
                        clean_url,
                    )
                else:
                    return response

            except httpx.TimeoutException as exc:
                last_exc = exc
                last_response = None
                logger.warning(
                    "Request timeout (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    clean_url,
                )

            except httpx.NetworkError as exc:
                last_exc = exc
                last_response = None
                logger.warning(
                    "Network error (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                )

            if attempt < self.max_retries:
                delay = (2**attempt) + random.uniform(0.0, 0.3)
                logger.debug("Retrying in %.2fs", delay)
                await asyncio.sleep(delay)

        if last_response is not None and last_response.status_code == 429:
            raise RateLimitError(
                f"Rate limit still exceeded after {self.max_retries + 1} attempts",
                url=clean_url,
                status_code=429,
                response_body=last_response.text,
            )

        if last_response is not None:
            raise RemoteError(
                f"HTTP {last_response.status_code} error for {clean_url}"
                f" after {self.max_retries + 1} attempts",
                url=clean_url,
                status_code=last_response.status_code,
                response_body=last_response.text,
            )

        raise NetworkError(
            f"Request failed after {self.max_retries + 1} attempts: {clean_url}",
            url=clean_url,
        ) from last_exc

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return await self._request_with_retry("GET", url, headers=headers, **kwargs)


def _retry_after(response: httpx.Response, fallback: float) -> float:
    """Seconds to wait before retrying, from delta-seconds or an HTTP date."""
    value = response.headers.get("Retry-After")
    if value is None:
        return fallback
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return fallback
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _quota_exhausted(response: httpx.Response) -> bool:
    """GitHub signals primary rate limiting as 403 with no remaining quota."""
    return response.headers.get("X-RateLimit-Remaining") == "0"
