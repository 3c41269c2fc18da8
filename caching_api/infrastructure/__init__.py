"""
Infrastructure Module

Concrete store implementations: Redis, PostgreSQL and in-memory.
"""
