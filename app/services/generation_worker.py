"""
Generation Worker - turns one claimed request into an artifact.

Portrait, report and storage failures degrade to fallbacks so a request
still completes. Only missing input or a failed database write marks the
request failed. Readings are warmed afterwards and never affect the
request outcome.
"""

import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, utcnow
from app.config import settings
from app.exceptions import GenerationFailure
from app.fsm.states import ReadingKind
from app.models.artifact import GeneratedArtifact
from app.models.generation_request import GenerationRequest
from app.schemas import parse_submission
from app.services.astrology_service import calculate_astrology
from app.services.generation_client import ImageGenerator, TextGenerator
from app.services.job_queue import JobQueue
from app.services.prompts import REPORT_SYSTEM_PROMPT, build_portrait_prompt, build_report_prompt
from app.services.reading_service import HoroscopeService
from app.services.release_scheduler import ReleaseScheduler
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

FALLBACK_REPORT = (
    "Your soulmate reading is being prepared with care. The stars point to "
    "a warm, steady connection built on trust and shared curiosity. Check "
    "back soon for your full personalized reading."
)


def fallback_image_url(answers: Dict[str, Any], seed: str = "soulmate") -> str:
    """Placeholder avatar, styled by the gender the owner asked for."""
    gender = answers.get("genderConfirm") or answers.get("gender")
    style = "adventurer-neutral" if gender in ("Female", "Woman") else "adventurer"
    return settings.fallback_image_url_template.format(style=style, seed=seed)


class GenerationWorker:
    """Processes queued generation requests one at a time."""

    def __init__(
        self,
        db: AsyncSession,
        image_generator: Optional[ImageGenerator] = None,
        text_generator: Optional[TextGenerator] = None,
        storage: Optional[StorageService] = None,
        scheduler: Optional[ReleaseScheduler] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.queue = JobQueue(db, clock=clock)
        self.image_generator = image_generator or ImageGenerator()
        self.text_generator = text_generator or TextGenerator()
        self.storage = storage or StorageService()
        self.scheduler = scheduler or ReleaseScheduler.from_settings(clock=clock)
        self.horoscopes = HoroscopeService(db, generator=self.text_generator, clock=clock)

    async def run_once(self) -> Optional[GenerationRequest]:
        """
        Claim and process a single request.

        Returns the request in its final state, or None when the queue
        was empty.
        """
        request = await self.queue.claim_next()
        if request is None:
            logger.debug("No queued generation requests")
            return None

        request_id = request.id
        owner = request.owner_email
        answers = dict(request.answers or {})

        try:
            artifact = await self.process(request)
            await self.queue.complete(request_id, artifact.id)
        except Exception as e:
            logger.error(
                f"Generation failed for request {request_id}: {e}",
                exc_info=True,
                extra={"request_id": request_id, "owner": owner},
            )
            await self.db.rollback()
            await self.queue.fail(request_id, str(e) or e.__class__.__name__)
            return await self.queue.get(request_id)

        await self.warm_readings(owner, artifact.astrology, answers)
        return await self.queue.get(request_id)

    async def process(self, request: GenerationRequest) -> GeneratedArtifact:
        """Build and persist the artifact. Raises InputIncomplete on bad input."""
        submission = parse_submission({
            "answers": request.answers,
            "birthDetails": request.birth_details,
        })
        answers = submission.answers
        astrology = calculate_astrology(submission.birth_details)

        prompt = build_portrait_prompt(answers, astrology)
        image_url, image_data, placeholder = await self._portrait(request.id, prompt, answers)
        report = await self._report(answers, astrology)

        artifact = GeneratedArtifact(
            id=uuid.uuid4(),
            owner_email=request.owner_email,
            image_url=image_url,
            image_data=image_data,
            image_is_placeholder=placeholder,
            report=report,
            astrology=astrology,
        )
        artifact.apply_schedule(self.scheduler.schedule(self.clock()))
        self.db.add(artifact)
        await self.db.flush()

        logger.info(
            f"Artifact {artifact.id} for {request.owner_email} "
            f"releases at {artifact.release_at.isoformat()}",
            extra={"request_id": request.id, "artifact_id": artifact.id},
        )
        return artifact

    async def _portrait(
        self,
        request_id: uuid.UUID,
        prompt: str,
        answers: Dict[str, Any],
    ) -> Tuple[Optional[str], Optional[str], bool]:
        """Return (image_url, image_data, is_placeholder)."""
        try:
            result = await self.image_generator.generate(prompt)
        except GenerationFailure as e:
            logger.warning(f"Portrait generation failed for {request_id}, using placeholder: {e}")
            return fallback_image_url(answers), None, True

        image_b64 = result.content
        url = await self.storage.upload_png(f"sketches/{request_id}.png", image_b64)
        if url:
            return url, None, False

        logger.info(f"Keeping sketch for {request_id} inline")
        return None, image_b64, False

    async def _report(self, answers: Dict[str, Any], astrology: Dict[str, Any]) -> str:
        try:
            result = await self.text_generator.generate(
                REPORT_SYSTEM_PROMPT,
                build_report_prompt(answers, astrology),
                max_tokens=1200,
            )
        except GenerationFailure as e:
            logger.warning(f"Report generation failed, using fallback text: {e}")
            return FALLBACK_REPORT
        return result.content

    async def warm_readings(
        self,
        owner: str,
        astrology: Dict[str, Any],
        answers: Dict[str, Any],
    ) -> int:
        """Pre-generate the owner's readings. Failures are logged only."""
        warmed = 0
        for kind in (ReadingKind.DAILY, ReadingKind.TOMORROW, ReadingKind.MONTHLY):
            try:
                await self.horoscopes.get_reading(owner, kind, astrology=astrology, answers=answers)
                await self.db.commit()
                warmed += 1
            except Exception as e:
                await self.db.rollback()
                logger.warning(f"Could not warm {kind.value} reading for {owner}: {e}")
        return warmed
