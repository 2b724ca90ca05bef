"""
Quota module for upstream call governance.

Provides a sliding window limiter for burst limits and a daily budget
tracker for hard per-day ceilings.
"""

from marketcache.quota.budget import (
    BudgetSnapshot,
    DailyBudget,
    QuotaExhaustedError,
    next_reset_time,
)
from marketcache.quota.limiter import LimiterStats, SlidingWindowLimiter

__all__ = [
    "BudgetSnapshot",
    "DailyBudget",
    "LimiterStats",
    "QuotaExhaustedError",
    "SlidingWindowLimiter",
    "next_reset_time",
]
