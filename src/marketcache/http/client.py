"""Async HTTP client for upstream APIs with retries and a per-attempt gate."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

BeforeRequest = Callable[[], Awaitable[None]]


class RateLimitError(Exception):
    """Raised when an upstream keeps answering 429."""

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limited. Retry after: {retry_after}s")


class HttpClient:
    """
    HTTP client with retry logic, timeouts, and rate limit handling.

    Every dispatch attempt, retries included, first awaits the optional
    ``before_request`` gate. Governed clients hook their budget or limiter
    in there so each real outbound call is counted exactly once.
    """

    DEFAULT_TIMEOUT = httpx.Timeout(
        connect=10.0,
        read=30.0,
        write=10.0,
        pool=10.0,
    )

    def __init__(
        self,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        headers: dict[str, str] | None = None,
        before_request: BeforeRequest | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Request timeout configuration
            max_retries: Maximum retry attempts
            backoff_factor: Exponential backoff multiplier
            headers: Default headers for all requests
            before_request: Coroutine awaited before every attempt; may raise
                to refuse the call
            transport: Custom httpx transport (mainly for tests)
        """
        self._base_url = base_url
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._default_headers = headers or {}
        self._before_request = before_request
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url or "",
                timeout=self._timeout,
                headers=self._default_headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        return self._backoff_factor * (2**attempt)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        """Seconds to wait after a 429, from Retry-After or a 60s default."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return 60.0

    async def request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            **kwargs: Additional arguments for httpx

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPStatusError: For server errors once retries run out
            RateLimitError: When rate limit exhausted
            Whatever ``before_request`` raises (e.g. QuotaExhaustedError)
        """
        client = self._get_client()

        for attempt in range(self._max_retries + 1):
            if self._before_request is not None:
                await self._before_request()

            try:
                response = await client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < self._max_retries:
                    backoff = self._calculate_backoff(attempt)
                    logger.warning(
                        f"{type(e).__name__} on {method} {url}. "
                        f"Retrying in {backoff}s (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise

            if response.status_code == 429:
                retry_after = self._retry_after(response)
                if attempt < self._max_retries:
                    logger.warning(
                        f"Rate limited on {method} {url}. "
                        f"Waiting {retry_after}s (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitError(retry_after)

            if response.status_code >= 500:
                if attempt < self._max_retries:
                    backoff = self._calculate_backoff(attempt)
                    logger.warning(
                        f"Server error {response.status_code} on {method} {url}. "
                        f"Retrying in {backoff}s (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(backoff)
                    continue
                response.raise_for_status()

            return response

        raise RuntimeError("Unexpected retry loop exit")

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Make a GET request."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Make a POST request."""
        return await self.request("POST", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """Make a GET request and return JSON response."""
        response = await self.get(url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def post_json(self, url: str, data: Any, **kwargs: Any) -> Any:
        """Make a POST request with JSON body and return JSON response."""
        response = await self.post(url, json=data, **kwargs)
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
