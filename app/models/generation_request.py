"""GenerationRequest model - queued sketch generation work."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, JSON, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.fsm.states import RequestStatus


class GenerationRequest(Base):
    """
    One row per generation attempt for an owner.

    The partial unique index allows any number of failed rows but at
    most one queued/processing/completed row per owner email. It is
    what makes duplicate completion events collapse onto one request.
    """

    __tablename__ = "generation_requests"

    __table_args__ = (
        Index(
            "uq_generation_requests_active_owner",
            "owner_email",
            unique=True,
            postgresql_where=text("status <> 'failed'"),
            sqlite_where=text("status <> 'failed'"),
        ),
        Index("ix_generation_requests_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Normalized owner email (identity across quiz, payment and account)
    owner_email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=RequestStatus.QUEUED.value,
        nullable=False,
    )

    # Quiz answers as submitted
    answers: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    # {"date": "YYYY-MM-DD", "time": "HH:MM" | None, "city": str | None}
    birth_details: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    artifact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("generated_artifacts.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Truncated worker error for failed requests
    error: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Timestamps
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

    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<GenerationRequest {self.id} {self.owner_email} status={self.status}>"

    @property
    def request_status(self) -> RequestStatus:
        return RequestStatus(self.status)
