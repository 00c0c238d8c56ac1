"""
Reading Service - date-scoped horoscope cache.

Readings are keyed by owner, kind and period (ISO date for daily and
tomorrow, YYYY-MM for monthly). Entries never expire, a new day simply
asks for a different key. Yesterday's "tomorrow" reading is reused as
today's "daily" reading instead of generating it again.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import Clock, utcnow
from app.config import settings
from app.database import dialect_insert
from app.exceptions import GenerationFailure, InputIncomplete
from app.fsm.states import ReadingKind
from app.models.artifact import GeneratedArtifact
from app.models.generation_request import GenerationRequest
from app.models.reading_cache import CachedReading
from app.services.generation_client import TextGenerator
from app.services.prompts import HOROSCOPE_SYSTEM_PROMPT, build_horoscope_prompt

logger = logging.getLogger(__name__)


class ReadingCache:
    """Get/put access to cached readings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(
        self,
        owner: str,
        kind: ReadingKind,
        period_key: str,
    ) -> Optional[CachedReading]:
        result = await self.db.execute(
            select(CachedReading)
            .where(CachedReading.owner_email == owner)
            .where(CachedReading.kind == ReadingKind(kind).value)
            .where(CachedReading.period_key == period_key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def put(
        self,
        owner: str,
        kind: ReadingKind,
        period_key: str,
        content: str,
        emotion_score: Optional[int] = None,
        energy_score: Optional[int] = None,
        rolled_from: Optional[str] = None,
        model: Optional[str] = None,
    ) -> CachedReading:
        """Insert or overwrite the entry for (owner, kind, period_key)."""
        now = datetime.now(timezone.utc)
        stmt = dialect_insert(self.db, CachedReading).values(
            owner_email=owner,
            kind=ReadingKind(kind).value,
            period_key=period_key,
            content=content,
            emotion_score=emotion_score,
            energy_score=energy_score,
            rolled_from=rolled_from,
            model=model,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["owner_email", "kind", "period_key"],
            set_={
                "content": stmt.excluded.content,
                "emotion_score": stmt.excluded.emotion_score,
                "energy_score": stmt.excluded.energy_score,
                "rolled_from": stmt.excluded.rolled_from,
                "model": stmt.excluded.model,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)
        await self.db.flush()
        return await self.get(owner, kind, period_key)


def _score(value: Any) -> Optional[int]:
    try:
        score = int(value)
    except (TypeError, ValueError):
        return None
    return min(max(score, 1), 10)


def parse_reading(kind: ReadingKind, raw: str) -> Tuple[str, Optional[int], Optional[int]]:
    """
    Split generated output into (guidance, emotion, energy).

    Daily and tomorrow readings are requested as JSON. Anything that does
    not parse is kept as plain guidance without scores.
    """
    if kind == ReadingKind.MONTHLY:
        return raw.strip(), None, None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning(f"{kind.value} reading was not JSON, keeping raw text")
        return raw.strip(), None, None
    if not isinstance(data, dict) or not data.get("guidance"):
        return raw.strip(), None, None
    return (
        str(data["guidance"]).strip(),
        _score(data.get("emotionScore")),
        _score(data.get("energyScore")),
    )


class HoroscopeService:
    """Daily, tomorrow and monthly readings with roll-forward."""

    MAX_TOKENS = {
        ReadingKind.DAILY: 400,
        ReadingKind.TOMORROW: 400,
        ReadingKind.MONTHLY: 1200,
    }

    def __init__(
        self,
        db: AsyncSession,
        generator: Optional[TextGenerator] = None,
        clock: Clock = utcnow,
        timezone_name: Optional[str] = None,
    ):
        self.db = db
        self.cache = ReadingCache(db)
        self.generator = generator or TextGenerator()
        self.clock = clock
        self.tz = ZoneInfo(timezone_name or settings.default_timezone)

    def today(self) -> date:
        """Current date on the owner-facing calendar."""
        return self.clock().astimezone(self.tz).date()

    async def get_daily(self, owner: str, **kwargs) -> CachedReading:
        return await self.get_reading(owner, ReadingKind.DAILY, **kwargs)

    async def get_tomorrow(self, owner: str, **kwargs) -> CachedReading:
        return await self.get_reading(owner, ReadingKind.TOMORROW, **kwargs)

    async def get_monthly(self, owner: str, **kwargs) -> CachedReading:
        return await self.get_reading(owner, ReadingKind.MONTHLY, **kwargs)

    async def get_reading(
        self,
        owner: str,
        kind: ReadingKind,
        astrology: Optional[Dict[str, Any]] = None,
        answers: Optional[Dict[str, Any]] = None,
        force: bool = False,
    ) -> CachedReading:
        """
        Cached reading for the current period, generating on a miss.

        `force` skips the cache and overwrites the entry. Raises
        GenerationFailure when generation fails; nothing is cached then.
        """
        kind = ReadingKind(kind)
        today = self.today()
        period_key = kind.period_key(today)

        if not force:
            cached = await self.cache.get(owner, kind, period_key)
            if cached:
                return cached

            if kind == ReadingKind.DAILY:
                rolled = await self._roll_forward(owner, period_key)
                if rolled:
                    return rolled

        if astrology is None:
            astrology, answers = await self.load_profile(owner)

        content, emotion, energy, model = await self._generate(
            kind, kind.target_date(today), astrology, answers
        )
        entry = await self.cache.put(
            owner,
            kind,
            period_key,
            content,
            emotion_score=emotion,
            energy_score=energy,
            model=model,
        )
        logger.info(f"Generated {kind.value} reading for {owner} ({period_key})")
        return entry

    async def _roll_forward(self, owner: str, period_key: str) -> Optional[CachedReading]:
        """Copy the tomorrow entry made for this date into the daily slot."""
        previous = await self.cache.get(owner, ReadingKind.TOMORROW, period_key)
        if previous is None:
            return None

        logger.info(f"Rolling tomorrow reading forward to daily for {owner} ({period_key})")
        return await self.cache.put(
            owner,
            ReadingKind.DAILY,
            period_key,
            previous.content,
            emotion_score=previous.emotion_score,
            energy_score=previous.energy_score,
            rolled_from=ReadingKind.TOMORROW.value,
            model=previous.model,
        )

    async def _generate(
        self,
        kind: ReadingKind,
        target: date,
        astrology: Dict[str, Any],
        answers: Optional[Dict[str, Any]],
    ) -> Tuple[str, Optional[int], Optional[int], Optional[str]]:
        prompt = build_horoscope_prompt(kind, astrology, target, answers)
        result = await self.generator.generate(
            HOROSCOPE_SYSTEM_PROMPT,
            prompt,
            max_tokens=self.MAX_TOKENS[kind],
            json_mode=kind != ReadingKind.MONTHLY,
        )
        content, emotion, energy = parse_reading(kind, result.content)
        if not content:
            raise GenerationFailure(f"Empty {kind.value} reading")
        return content, emotion, energy, result.model

    async def load_profile(
        self, owner: str
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Astrology and quiz answers from the owner's latest artifact."""
        result = await self.db.execute(
            select(GeneratedArtifact, GenerationRequest.answers)
            .outerjoin(
                GenerationRequest,
                GenerationRequest.artifact_id == GeneratedArtifact.id,
            )
            .where(GeneratedArtifact.owner_email == owner)
            .order_by(GeneratedArtifact.generated_at.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            raise InputIncomplete(f"No generated sketch for {owner}")
        artifact, answers = row
        return artifact.astrology or {}, answers
