"""SQLAlchemy ORM models.

Usage metrics are stored as one JSON blob per provider so the record shape
can evolve without migrations.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


class ProviderMetricsModel(Base):
    __tablename__ = "api_metrics"

    provider_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    metrics: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
