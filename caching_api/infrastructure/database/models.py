"""
Database Models

SQLAlchemy models for the durable record table and its change log.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class TimestampMixin:
    """Mixin for timestamp fields."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class CacheableData(Base, TimestampMixin):
    """Authoritative versioned record."""

    __tablename__ = "cacheable_data"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    # JSON-encoded payload
    data: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )


class CacheInvalidationLog(Base):
    """Append-only change log written by the cacheable_data trigger."""

    __tablename__ = "cache_invalidation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    operation: Mapped[Optional[str]] = mapped_column(String(50))
    table_name: Mapped[Optional[str]] = mapped_column(String(100))
    record_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    old_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONB)
    new_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
