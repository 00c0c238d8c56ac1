"""
Release Scheduler - delayed reveal of generated artifacts.

Content is generated within minutes but shown to the owner only after
`sketch_release_delay_minutes`. Readiness is a pure function of the
stored release time and the current time.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from app.clock import Clock, ensure_utc, utcnow
from app.config import settings
from app.models.artifact import GeneratedArtifact, ReleaseSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactVisibility:
    """What the owner may see of an artifact at a given moment."""

    ready: bool
    artifact_id: uuid.UUID
    release_at: datetime
    time_remaining: timedelta
    content_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "artifact_id": str(self.artifact_id),
            "release_at": self.release_at,
            "time_remaining_seconds": int(self.time_remaining.total_seconds()),
            "content_ref": self.content_ref,
        }


def content_ref_for(artifact: GeneratedArtifact) -> Optional[str]:
    """Hosted image URL, or the image endpoint for inline data."""
    if not artifact.has_image:
        return None
    if artifact.image_url:
        return artifact.image_url
    return f"{settings.public_api_url.rstrip('/')}/api/images/{artifact.id}"


class ReleaseScheduler:
    """Computes release schedules and answers readiness questions."""

    def __init__(
        self,
        release_delay_minutes: int,
        promised_window_hours: int,
        clock: Clock = utcnow,
    ):
        if release_delay_minutes < 0:
            raise ValueError("release_delay_minutes must not be negative")
        self.release_delay_minutes = release_delay_minutes
        self.promised_window_hours = promised_window_hours
        self.clock = clock

    @classmethod
    def from_settings(cls, clock: Clock = utcnow) -> "ReleaseScheduler":
        return cls(
            release_delay_minutes=settings.sketch_release_delay_minutes,
            promised_window_hours=settings.sketch_promised_hours,
            clock=clock,
        )

    def schedule(self, generated_at: Optional[datetime] = None) -> ReleaseSchedule:
        generated_at = ensure_utc(generated_at) if generated_at else self.clock()
        return ReleaseSchedule(
            generated_at=generated_at,
            release_at=generated_at + timedelta(minutes=self.release_delay_minutes),
            release_delay_minutes=self.release_delay_minutes,
            promised_window_hours=self.promised_window_hours,
        )

    def is_ready(
        self,
        target: Union[GeneratedArtifact, ReleaseSchedule],
        now: Optional[datetime] = None,
    ) -> bool:
        now = ensure_utc(now) if now else self.clock()
        return now >= ensure_utc(target.release_at)

    def time_remaining(
        self,
        target: Union[GeneratedArtifact, ReleaseSchedule],
        now: Optional[datetime] = None,
    ) -> timedelta:
        now = ensure_utc(now) if now else self.clock()
        return max(ensure_utc(target.release_at) - now, timedelta(0))

    def visibility(
        self,
        artifact: GeneratedArtifact,
        now: Optional[datetime] = None,
    ) -> ArtifactVisibility:
        """Withholds the content reference until the release time."""
        now = ensure_utc(now) if now else self.clock()
        schedule = artifact.schedule
        ready = self.is_ready(schedule, now)
        return ArtifactVisibility(
            ready=ready,
            artifact_id=artifact.id,
            release_at=schedule.release_at,
            time_remaining=self.time_remaining(schedule, now),
            content_ref=content_ref_for(artifact) if ready else None,
        )
