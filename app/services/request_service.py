"""
Request Service - the pipeline's public operations.

Creating a request is called after payment confirmation, from the
webhook and the redirect alike; both land on the same request.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, utcnow
from app.exceptions import PersistenceFailure
from app.models.artifact import GeneratedArtifact
from app.schemas import normalize_owner, parse_submission
from app.services.job_queue import IdempotencyGuard, JobQueue
from app.services.release_scheduler import ArtifactVisibility, ReleaseScheduler

logger = logging.getLogger(__name__)


class RequestService:
    """Create requests, report their status and gate artifact visibility."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        scheduler: Optional[ReleaseScheduler] = None,
    ):
        self.db = db
        self.queue = JobQueue(db, clock=clock)
        self.guard = IdempotencyGuard(self.queue)
        self.scheduler = scheduler or ReleaseScheduler.from_settings(clock=clock)

    async def create_request(self, owner: str, payload: Optional[Dict[str, Any]]) -> uuid.UUID:
        """
        Return the owner's active request id, creating one if needed.

        Raises InputIncomplete before anything is written when answers or
        the birth date are missing.
        """
        owner = normalize_owner(owner)
        submission = parse_submission(payload)

        try:
            request_id, created = await self.guard.acquire(owner, submission)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Could not store generation request for {owner}: {e}", exc_info=True)
            raise PersistenceFailure("Could not store generation request") from e

        if not created:
            logger.info(f"Duplicate request for {owner} collapsed onto {request_id}")
        return request_id

    async def get_request_status(self, request_id: uuid.UUID) -> Optional[Dict[str, Any]]:
        request = await self.queue.get(request_id)
        if request is None:
            return None
        return {
            "id": str(request.id),
            "status": request.status,
            "artifact_id": str(request.artifact_id) if request.artifact_id else None,
            "error": request.error,
        }

    async def latest_artifact(self, owner: str) -> Optional[GeneratedArtifact]:
        result = await self.db.execute(
            select(GeneratedArtifact)
            .where(GeneratedArtifact.owner_email == normalize_owner(owner))
            .order_by(GeneratedArtifact.generated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_artifact_visibility(self, owner: str) -> Optional[ArtifactVisibility]:
        """None when the owner has no artifact yet."""
        artifact = await self.latest_artifact(owner)
        if artifact is None:
            return None
        return self.scheduler.visibility(artifact)

    async def get_released_artifact(self, artifact_id: uuid.UUID) -> Optional[GeneratedArtifact]:
        """The artifact, only once its release time has passed."""
        artifact = await self.db.get(GeneratedArtifact, artifact_id)
        if artifact is None or not self.scheduler.is_ready(artifact):
            return None
        return artifact

    async def list_failed(self, limit: int = 100) -> list:
        return [
            {
                "id": str(r.id),
                "owner_email": r.owner_email,
                "error": r.error,
                "created_at": r.created_at,
                "updated_at": r.updated_at,
            }
            for r in await self.queue.list_failed(limit)
        ]
