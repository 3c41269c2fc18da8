"""
Prometheus metrics for the consistency layer.
"""

from prometheus_client import Counter

cache_lookups = Counter(
    "caching_api_cache_lookups_total",
    "Volatile-store lookups performed by a strategy",
    ["strategy", "result"],
)

best_effort_failures = Counter(
    "caching_api_best_effort_failures_total",
    "Swallowed failures of best-effort cache operations",
    ["operation"],
)

optimistic_conflicts = Counter(
    "caching_api_optimistic_conflicts_total",
    "Updates rejected because the caller's version was stale",
    ["source"],
)
