"""HTTP transport helpers."""

from marketcache.http.client import HttpClient, RateLimitError

__all__ = ["HttpClient", "RateLimitError"]
