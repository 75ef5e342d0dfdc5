"""
Declarative base and shared column helpers (SQLAlchemy 2.0 style)

Money columns are Numeric(15, 2); timestamps are stored in UTC.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money_column(**kwargs) -> Column:
    """BRL amount column, two decimal places."""
    kwargs.setdefault("nullable", False)
    return Column(Numeric(precision=15, scale=2), **kwargs)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


# Metadata for migrations
metadata = Base.metadata
