"""
Scoring Infrastructure Models
=============================

SQLAlchemy ORM model for replies. All sub-scores are stored so the
breakdown survives changes to the scoring configuration.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from inquiry_desk.infrastructure.database import Base, UTCDateTime


class ReplyModel(Base):
    """
    Database model for Reply entity.

    Maps to the 'replies' table.
    """
    __tablename__ = "replies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    inquiry_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("inquiries.id"), nullable=False, index=True)
    operator_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("operators.id"), nullable=False, index=True)

    body: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reply_time_minutes: Mapped[float] = mapped_column(Float, nullable=False)

    speed_score: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_score: Mapped[int] = mapped_column(Integer, nullable=False)
    outcome_score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    outcome_signal: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
