"""
Workforce Infrastructure Models
===============================

SQLAlchemy ORM model for operators.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Float, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from inquiry_desk.infrastructure.database import Base, UTCDateTime


class OperatorModel(Base):
    """
    Database model for Operator entity.

    Maps to the 'operators' table.
    """
    __tablename__ = "operators"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Aggregates (rebuildable from replies, except total_missed)
    total_replied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_missed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_reply_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Balancer ordering; compare-and-set guarded
    last_assigned_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
