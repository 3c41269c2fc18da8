"""
In-memory store implementations for tests and single-process use.
"""

from .memory_store import InMemoryDurableStore, InMemoryVolatileStore

__all__ = ["InMemoryVolatileStore", "InMemoryDurableStore"]
