"""GeneratedArtifact model - the sketch bundle and its release schedule."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    JSON,
    Boolean,
    Integer,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.clock import ensure_utc
from app.database import Base


@dataclass(frozen=True)
class ReleaseSchedule:
    """Scheduling metadata attached to an artifact at creation."""

    generated_at: datetime
    release_at: datetime
    release_delay_minutes: int
    promised_window_hours: int
    notification_sent: bool = False
    notification_scheduled: bool = True


class GeneratedArtifact(Base):
    """
    Generated portrait plus readings for one completed request.

    Created once at completion. The only later mutation is the
    notification flip performed by the notification sweep.
    """

    __tablename__ = "generated_artifacts"

    __table_args__ = (
        CheckConstraint(
            "release_at >= generated_at",
            name="ck_generated_artifacts_release_after_generation",
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

    # Hosted or placeholder image URL
    image_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Base64 PNG kept inline when object storage is unavailable
    image_data: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    image_is_placeholder: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Personality reading
    report: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )

    # Derived attributes (sun sign, element, birth details)
    astrology: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    # === Release schedule ===

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    release_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    release_delay_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    promised_window_hours: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    notification_sent: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )

    notification_scheduled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<GeneratedArtifact {self.id} {self.owner_email} release_at={self.release_at}>"

    @property
    def schedule(self) -> ReleaseSchedule:
        return ReleaseSchedule(
            generated_at=ensure_utc(self.generated_at),
            release_at=ensure_utc(self.release_at),
            release_delay_minutes=self.release_delay_minutes,
            promised_window_hours=self.promised_window_hours,
            notification_sent=self.notification_sent,
            notification_scheduled=self.notification_scheduled,
        )

    def apply_schedule(self, schedule: ReleaseSchedule) -> None:
        self.generated_at = schedule.generated_at
        self.release_at = schedule.release_at
        self.release_delay_minutes = schedule.release_delay_minutes
        self.promised_window_hours = schedule.promised_window_hours
        self.notification_sent = schedule.notification_sent
        self.notification_scheduled = schedule.notification_scheduled

    @property
    def has_image(self) -> bool:
        return bool(self.image_url or self.image_data)
