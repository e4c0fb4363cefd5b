"""Usage counter table owned by the usage accountant."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tiergate.db.base import Base


class UsageCounter(Base):
    """One row per user and metric; ``count`` applies to the current period only."""

    __tablename__ = "usage_counters"
    __table_args__ = (
        UniqueConstraint("user_id", "metric", name="uq_usage_counters_user_metric"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    metric: Mapped[str] = mapped_column(String(64), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Naive UTC. The counter belongs to an elapsed period once now >= this.
    period_reset_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


__all__ = ["UsageCounter"]
