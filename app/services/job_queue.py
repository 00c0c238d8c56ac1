"""
Job Queue - durable generation requests with single-claim semantics.

State lives in the generation_requests table. Every transition is a
conditional UPDATE so a second poller (or a stale one) can never move a
request it does not own.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, utcnow
from app.config import settings
from app.database import dialect_insert
from app.exceptions import PersistenceFailure
from app.fsm.states import RequestStatus
from app.models.generation_request import GenerationRequest
from app.schemas import QuizSubmission

logger = logging.getLogger(__name__)

# Candidates tried per claim before giving up for this tick
CLAIM_ATTEMPTS = 3


def sources_of(target: RequestStatus) -> List[str]:
    """Statuses allowed to move to `target`."""
    return [s.value for s in RequestStatus if target in s.next_states]


def truncate_error(error: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.max_error_length
    return error if len(error) <= limit else error[:limit]


class JobQueue:
    """Queue operations over generation requests."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def enqueue(self, owner: str, submission: QuizSubmission) -> Optional[uuid.UUID]:
        """
        Insert a queued request for `owner`.

        Returns the new id, or None when the owner already has a
        non-failed request (the insert hits the partial unique index and
        does nothing).
        """
        now = self.clock()
        stmt = (
            dialect_insert(self.db, GenerationRequest)
            .values(
                id=uuid.uuid4(),
                owner_email=owner,
                status=RequestStatus.QUEUED.value,
                answers=submission.answers,
                birth_details=submission.birth_details.model_dump(),
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing()
            .returning(GenerationRequest.id)
        )
        result = await self.db.execute(stmt)
        request_id = result.scalar_one_or_none()
        await self.db.commit()

        if request_id:
            logger.info(f"Queued generation request {request_id} for {owner}")
        return request_id

    async def get(self, request_id: uuid.UUID) -> Optional[GenerationRequest]:
        return await self.db.get(GenerationRequest, request_id, populate_existing=True)

    async def active_for(self, owner: str) -> Optional[GenerationRequest]:
        """The owner's non-failed request, if any."""
        result = await self.db.execute(
            select(GenerationRequest)
            .where(GenerationRequest.owner_email == owner)
            .where(GenerationRequest.status.in_(
                [s.value for s in RequestStatus if s.blocks_new_request]
            ))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def claim_next(self) -> Optional[GenerationRequest]:
        """
        Move the oldest queued request to processing and return it.

        Returns None when nothing is queued, or when every candidate was
        taken by another poller first.
        """
        for _ in range(CLAIM_ATTEMPTS):
            result = await self.db.execute(
                select(GenerationRequest.id)
                .where(GenerationRequest.status == RequestStatus.QUEUED.value)
                .order_by(GenerationRequest.created_at, GenerationRequest.id)
                .limit(1)
            )
            candidate = result.scalar_one_or_none()
            if candidate is None:
                return None

            now = self.clock()
            result = await self.db.execute(
                update(GenerationRequest)
                .where(GenerationRequest.id == candidate)
                .where(GenerationRequest.status == RequestStatus.QUEUED.value)
                .values(
                    status=RequestStatus.PROCESSING.value,
                    claimed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

            if result.rowcount == 1:
                logger.info(f"Claimed generation request {candidate}")
                return await self.get(candidate)

            logger.info(f"Request {candidate} claimed elsewhere, trying next")

        return None

    async def complete(self, request_id: uuid.UUID, artifact_id: uuid.UUID) -> bool:
        """Mark a processing request completed and link its artifact."""
        now = self.clock()
        result = await self.db.execute(
            update(GenerationRequest)
            .where(GenerationRequest.id == request_id)
            .where(GenerationRequest.status.in_(sources_of(RequestStatus.COMPLETED)))
            .values(
                status=RequestStatus.COMPLETED.value,
                artifact_id=artifact_id,
                completed_at=now,
                updated_at=now,
                error=None,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount != 1:
            logger.warning(f"Request {request_id} was not processing, completion ignored")
            return False
        logger.info(f"Completed request {request_id} -> artifact {artifact_id}")
        return True

    async def fail(self, request_id: uuid.UUID, error: str) -> bool:
        """Mark a processing request failed. No retry follows."""
        now = self.clock()
        result = await self.db.execute(
            update(GenerationRequest)
            .where(GenerationRequest.id == request_id)
            .where(GenerationRequest.status.in_(sources_of(RequestStatus.FAILED)))
            .values(
                status=RequestStatus.FAILED.value,
                error=truncate_error(error),
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount != 1:
            logger.warning(f"Request {request_id} already terminal, failure ignored")
            return False
        logger.warning(f"Request {request_id} failed: {error[:200]}")
        return True

    async def list_failed(self, limit: int = 100) -> List[GenerationRequest]:
        result = await self.db.execute(
            select(GenerationRequest)
            .where(GenerationRequest.status == RequestStatus.FAILED.value)
            .order_by(GenerationRequest.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict:
        result = await self.db.execute(
            select(GenerationRequest.status, func.count())
            .group_by(GenerationRequest.status)
        )
        return {status: count for status, count in result.all()}


class IdempotencyGuard:
    """
    One active generation request per owner.

    Repeated completion events (webhook plus redirect, retries, double
    clicks) all resolve to the same request id.
    """

    # A lookup can race with the active row failing, in which case the
    # insert is simply retried.
    ATTEMPTS = 3

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def acquire(self, owner: str, submission: QuizSubmission) -> Tuple[uuid.UUID, bool]:
        """Return (request_id, created)."""
        for _ in range(self.ATTEMPTS):
            request_id = await self.queue.enqueue(owner, submission)
            if request_id:
                return request_id, True

            existing = await self.queue.active_for(owner)
            if existing:
                logger.info(f"Reusing active request {existing.id} for {owner}")
                return existing.id, False

        raise PersistenceFailure(f"Could not acquire a generation request for {owner}")
