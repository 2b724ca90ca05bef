"""
Namespace TTL policies.

Tradera allows 100 calls per day, so its namespaces get long TTLs and are
persisted to disk. Blocket is cheap to re-query and stays memory-only.
"""

from dataclasses import dataclass

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR


@dataclass(frozen=True)
class NamespacePolicy:
    """TTL and persistence policy for one cache namespace."""

    ttl_seconds: float
    """Default time-to-live for entries in the namespace."""

    durable: bool = False
    """Whether entries are also written to the persistent tier."""


DEFAULT_POLICY = NamespacePolicy(ttl_seconds=5 * MINUTE, durable=False)

NAMESPACE_POLICIES: dict[str, NamespacePolicy] = {
    "tradera:categories": NamespacePolicy(ttl_seconds=DAY, durable=True),
    "tradera:counties": NamespacePolicy(ttl_seconds=7 * DAY, durable=True),
    "tradera:search": NamespacePolicy(ttl_seconds=30 * MINUTE, durable=True),
    "tradera:item": NamespacePolicy(ttl_seconds=15 * MINUTE, durable=True),
    "tradera:feedback": NamespacePolicy(ttl_seconds=HOUR, durable=True),
    "blocket:search": NamespacePolicy(ttl_seconds=5 * MINUTE),
    "blocket:ad": NamespacePolicy(ttl_seconds=10 * MINUTE),
    "blocket:categories": NamespacePolicy(ttl_seconds=HOUR),
}


def resolve_policy(
    namespace: str,
    policies: dict[str, NamespacePolicy] | None = None,
) -> NamespacePolicy:
    """Look up a namespace policy, falling back to the conservative default."""
    table = NAMESPACE_POLICIES if policies is None else policies
    return table.get(namespace, DEFAULT_POLICY)
