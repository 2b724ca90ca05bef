"""Admin HTTP API."""

from marketcache.api.app import create_app

__all__ = ["create_app"]
