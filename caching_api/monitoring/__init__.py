"""
Monitoring Module

Prometheus metrics for cache lookups, best-effort failures and conflicts.
"""
