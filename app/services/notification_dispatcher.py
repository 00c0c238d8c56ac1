"""
Notification Dispatcher - one "ready" email per released artifact.

Delivery is at-least-once. The flag flip happens after a successful send,
so a crash between the two can repeat a send on the next sweep, but a
released artifact is never left without one.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, utcnow
from app.config import settings
from app.exceptions import NotificationFailure
from app.models.artifact import GeneratedArtifact
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends pending ready notifications in batches."""

    TEMPLATE = "sketch_ready"

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[EmailService] = None,
        clock: Clock = utcnow,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.notifier = notifier or EmailService()
        self.clock = clock
        self.batch_size = batch_size or settings.notification_batch_size

    async def pending(self, now: datetime) -> List[GeneratedArtifact]:
        """Released artifacts still waiting for their notification."""
        result = await self.db.execute(
            select(GeneratedArtifact)
            .where(GeneratedArtifact.release_at <= now)
            .where(GeneratedArtifact.notification_sent.is_(False))
            .order_by(GeneratedArtifact.release_at)
            .limit(self.batch_size)
        )
        return list(result.scalars().all())

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Notify every released, un-notified artifact in one batch.

        Returns the number of notifications sent. Failed sends leave the
        flag false and are picked up again by the next sweep.
        """
        now = now or self.clock()
        artifacts = await self.pending(now)
        if not artifacts:
            return 0

        logger.info(f"Found {len(artifacts)} artifacts awaiting notification")
        sent = 0

        for artifact in artifacts:
            artifact_id = artifact.id
            try:
                await self._deliver(artifact)
            except NotificationFailure as e:
                logger.warning(f"Notification for {artifact_id} not sent: {e}")
                continue

            if await self._mark_sent(artifact_id, now):
                sent += 1

        logger.info(f"Notification sweep sent {sent}/{len(artifacts)}")
        return sent

    async def _deliver(self, artifact: GeneratedArtifact) -> str:
        data = {
            "sketch_url": f"{settings.app_url.rstrip('/')}/sketch?email={quote(artifact.owner_email)}",
            "artifact_id": str(artifact.id),
        }
        try:
            message_id = await self.notifier.send(artifact.owner_email, self.TEMPLATE, data)
        except Exception as e:
            raise NotificationFailure(str(e)) from e
        if not message_id:
            raise NotificationFailure("notifier returned no message id")
        return message_id

    async def _mark_sent(self, artifact_id: uuid.UUID, now: datetime) -> bool:
        result = await self.db.execute(
            update(GeneratedArtifact)
            .where(GeneratedArtifact.id == artifact_id)
            .where(GeneratedArtifact.notification_sent.is_(False))
            .values(
                notification_sent=True,
                notification_scheduled=False,
                notified_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount != 1:
            logger.info(f"Artifact {artifact_id} already marked notified")
            return False
        return True
