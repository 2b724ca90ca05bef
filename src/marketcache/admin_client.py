"""
Admin API Client
Synchronous HTTP client for a running marketcache admin server.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx


class AdminClient:
    """
    Python client for the marketcache admin API.

    Example:
        ```python
        with AdminClient("http://localhost:8000") as client:
            print(client.quota()["tradera"]["remaining"])
            client.clear(namespace="blocket:search")
        ```
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the admin client.

        Args:
            base_url: Admin server URL
            timeout: Request timeout in seconds
            transport: Custom httpx transport (mainly for tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()

    def health(self) -> dict[str, Any]:
        """Check server health and the Tradera budget."""
        return self._request("GET", "/health")

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return self._request("GET", "/v1/cache/stats")

    def cleanup(self) -> dict[str, int]:
        """Sweep expired entries."""
        return self._request("POST", "/v1/cache/cleanup")

    def clear(self, namespace: Optional[str] = None) -> dict[str, int]:
        """Clear the whole cache, or one namespace (memory tier only)."""
        params = {"namespace": namespace} if namespace else None
        return self._request("DELETE", "/v1/cache", params=params)

    def quota(self) -> dict[str, Any]:
        """Get the budget and limiter state."""
        return self._request("GET", "/v1/quota")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AdminClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
