"""Quota-governed two-tier cache for marketplace search APIs."""

__version__ = "0.1.0"
