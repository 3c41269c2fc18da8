"""
Caching API

Consistency layer between a Redis cache and a PostgreSQL record store:
cache-aside and write-through strategies plus in-process version tracking
for optimistic concurrency control.
"""

__version__ = "0.1.0"
