"""
Tests for the reading cache and roll-forward.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.exceptions import GenerationFailure, InputIncomplete
from app.fsm.states import ReadingKind
from app.models.reading_cache import CachedReading
from app.services.generation_client import GenerationResult
from app.services.reading_service import HoroscopeService, ReadingCache, parse_reading

ASTROLOGY = {"sunSign": "Taurus", "element": "Earth", "birthDate": "1990-05-15"}


def _generator():
    counter = {"n": 0}

    async def generate(system_prompt, user_prompt, max_tokens=800, json_mode=False):
        counter["n"] += 1
        text = f"reading #{counter['n']}"
        if json_mode:
            text = json.dumps({"guidance": text, "emotionScore": 8, "energyScore": 6})
        return GenerationResult(content=text, model="test-model")

    generator = AsyncMock()
    generator.generate.side_effect = generate
    return generator


async def _rows(db, owner):
    result = await db.execute(
        select(func.count()).select_from(CachedReading).where(CachedReading.owner_email == owner)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_cache_put_upserts(db):
    cache = ReadingCache(db)

    await cache.put("a@example.com", ReadingKind.DAILY, "2026-03-10", "first")
    entry = await cache.put("a@example.com", ReadingKind.DAILY, "2026-03-10", "second", emotion_score=3)

    assert entry.content == "second"
    assert entry.emotion_score == 3
    assert await _rows(db, "a@example.com") == 1


@pytest.mark.asyncio
async def test_cache_get_miss(db):
    assert await ReadingCache(db).get("a@example.com", ReadingKind.MONTHLY, "2026-03") is None


@pytest.mark.asyncio
async def test_miss_generates_then_hits(db, clock):
    generator = _generator()
    service = HoroscopeService(db, generator=generator, clock=clock)

    first = await service.get_daily("a@example.com", astrology=ASTROLOGY)
    second = await service.get_daily("a@example.com", astrology=ASTROLOGY)

    assert first.period_key == "2026-03-10"
    assert first.content == "reading #1"
    assert first.emotion_score == 8
    assert first.energy_score == 6
    assert second.content == first.content
    assert generator.generate.await_count == 1


@pytest.mark.asyncio
async def test_tomorrow_rolls_forward_into_daily(db, clock):
    """Tomorrow's reading for D becomes the daily reading on D with no new generation."""
    generator = _generator()
    service = HoroscopeService(db, generator=generator, clock=clock)

    tomorrow = await service.get_tomorrow("a@example.com", astrology=ASTROLOGY)
    assert tomorrow.period_key == "2026-03-11"
    assert generator.generate.await_count == 1

    clock.advance(days=1)
    daily = await service.get_daily("a@example.com")

    assert generator.generate.await_count == 1
    assert daily.kind == ReadingKind.DAILY.value
    assert daily.period_key == "2026-03-11"
    assert daily.content == tomorrow.content
    assert daily.emotion_score == tomorrow.emotion_score
    assert daily.energy_score == tomorrow.energy_score
    assert daily.rolled_from == "tomorrow"


@pytest.mark.asyncio
async def test_stale_tomorrow_is_not_rolled(db, clock):
    generator = _generator()
    service = HoroscopeService(db, generator=generator, clock=clock)

    await service.get_tomorrow("a@example.com", astrology=ASTROLOGY)
    clock.advance(days=2)
    daily = await service.get_daily("a@example.com", astrology=ASTROLOGY)

    assert generator.generate.await_count == 2
    assert daily.rolled_from is None


@pytest.mark.asyncio
async def test_monthly_uses_year_month_key(db, clock):
    generator = _generator()
    service = HoroscopeService(db, generator=generator, clock=clock)

    monthly = await service.get_monthly("a@example.com", astrology=ASTROLOGY)

    assert monthly.period_key == "2026-03"
    assert monthly.content == "reading #1"
    assert monthly.emotion_score is None
    _, kwargs = generator.generate.await_args
    assert kwargs["json_mode"] is False

    clock.advance(days=15)
    await service.get_monthly("a@example.com", astrology=ASTROLOGY)
    assert generator.generate.await_count == 1


@pytest.mark.asyncio
async def test_force_regenerates_and_overwrites(db, clock):
    generator = _generator()
    service = HoroscopeService(db, generator=generator, clock=clock)

    await service.get_daily("a@example.com", astrology=ASTROLOGY)
    forced = await service.get_daily("a@example.com", astrology=ASTROLOGY, force=True)

    assert forced.content == "reading #2"
    assert await _rows(db, "a@example.com") == 1


@pytest.mark.asyncio
async def test_failed_generation_is_not_cached(db, clock):
    generator = AsyncMock()
    generator.generate.side_effect = GenerationFailure("timeout")
    service = HoroscopeService(db, generator=generator, clock=clock)

    with pytest.raises(GenerationFailure):
        await service.get_daily("a@example.com", astrology=ASTROLOGY)

    assert await _rows(db, "a@example.com") == 0


@pytest.mark.asyncio
async def test_missing_profile_raises(db, clock):
    service = HoroscopeService(db, generator=_generator(), clock=clock)

    with pytest.raises(InputIncomplete):
        await service.get_daily("nobody@example.com")


@pytest.mark.asyncio
async def test_period_follows_configured_timezone(db):
    # 02:00 UTC on the 10th is still the 9th in New York
    early = datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc)
    service = HoroscopeService(
        db, generator=_generator(), clock=lambda: early, timezone_name="America/New_York"
    )

    reading = await service.get_daily("a@example.com", astrology=ASTROLOGY)
    assert reading.period_key == "2026-03-09"


def test_parse_reading_json():
    raw = json.dumps({"guidance": "Be bold.", "emotionScore": 12, "energyScore": "4"})
    assert parse_reading(ReadingKind.DAILY, raw) == ("Be bold.", 10, 4)


def test_parse_reading_malformed_keeps_text():
    assert parse_reading(ReadingKind.TOMORROW, "Just text") == ("Just text", None, None)


def test_parse_reading_monthly_is_plain_text():
    assert parse_reading(ReadingKind.MONTHLY, "  A month of growth.  ") == ("A month of growth.", None, None)
