"""Quota-aware upstream client boundary."""

from marketcache.clients.base import BudgetedClient, GovernedClient, ThrottledClient

__all__ = ["BudgetedClient", "GovernedClient", "ThrottledClient"]
