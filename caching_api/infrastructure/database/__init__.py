"""
Database Infrastructure Module

PostgreSQL durable store, engine setup and schema bootstrap.
"""

from .engine import create_database_engine, verify_connection
from .models import Base, CacheableData, CacheInvalidationLog
from .postgres_store import PostgresDurableStore
from .schema import bootstrap_schema

__all__ = [
    "PostgresDurableStore",
    "create_database_engine",
    "verify_connection",
    "bootstrap_schema",
    "Base",
    "CacheableData",
    "CacheInvalidationLog",
]
