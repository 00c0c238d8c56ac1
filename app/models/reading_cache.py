"""Reading cache model - date-scoped horoscope content per owner."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Text, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class CachedReading(Base):
    """
    Cache for generated readings.
    One row per owner per kind per period.
    Unique constraint on (owner_email, kind, period_key).
    """

    __tablename__ = "cached_readings"

    __table_args__ = (
        UniqueConstraint(
            "owner_email", "kind", "period_key",
            name="uq_cached_readings_owner_kind_period"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        index=True,
    )

    # daily / tomorrow / monthly
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # YYYY-MM-DD for daily/tomorrow, YYYY-MM for monthly
    period_key: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    emotion_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    energy_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    # Kind this entry was copied from by roll-forward
    rolled_from: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
    )

    # Model used for generation
    model: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CachedReading {self.owner_email} {self.kind} {self.period_key}>"
