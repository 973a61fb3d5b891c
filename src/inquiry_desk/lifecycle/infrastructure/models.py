"""
Lifecycle Infrastructure Models
===============================

SQLAlchemy ORM models for inquiries and their activity trail.

Inquiries are never deleted; `version` is bumped on every write and checked
in the WHERE clause of every update.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from inquiry_desk.config import InquiryStatus, Priority
from inquiry_desk.infrastructure.database import Base, UTCDateTime


class InquiryModel(Base):
    """
    Database model for Inquiry entity.

    Maps to the 'inquiries' table.
    """
    __tablename__ = "inquiries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Dedup key from the content source
    external_reference: Mapped[str] = mapped_column(String(500), unique=True, index=True, nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[Priority] = mapped_column(String(20), nullable=False, default=Priority.NORMAL)
    relevance_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifecycle
    status: Mapped[InquiryStatus] = mapped_column(
        String(20), nullable=False, default=InquiryStatus.UNASSIGNED, index=True
    )
    assigned_to: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("operators.id"), nullable=True, index=True
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    bandwidth_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    escalation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    replied_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        # Sweep scan: status = assigned and deadline < now
        Index("ix_inquiries_status_deadline", "status", "deadline"),
    )


class ActivityModel(Base):
    """
    Database model for the append-only activity trail.

    Maps to the 'activities' table.
    """
    __tablename__ = "activities"

    # Sequential so that records written in the same instant keep their order
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    inquiry_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("inquiries.id"), nullable=False, index=True)
    operator_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True
    )
