"""
Tests for the in-process scheduler and the tick functions it drives.
"""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.fsm.states import RequestStatus
from app.services.generation_client import GenerationResult
from app.services.generation_worker import GenerationWorker
from app.services.request_service import RequestService
from app.workers.generation_poller import run_generation_tick
from app.workers.notification_sweep import run_notification_sweep
from app.workers.scheduler import Scheduler, build_pipeline_scheduler


@pytest.mark.asyncio
async def test_first_run_delay_then_fixed_interval(clock):
    scheduler = Scheduler(clock=clock)
    tick = AsyncMock()
    scheduler.add("poller", timedelta(minutes=5), tick, first_run_delay=timedelta(seconds=5))

    assert await scheduler.run_pending() == []

    clock.advance(seconds=5)
    assert await scheduler.run_pending() == ["poller"]
    assert await scheduler.run_pending() == []

    clock.advance(minutes=4, seconds=59)
    assert await scheduler.run_pending() == []
    clock.advance(seconds=1)
    assert await scheduler.run_pending() == ["poller"]
    assert tick.await_count == 2


@pytest.mark.asyncio
async def test_missed_ticks_are_skipped(clock):
    scheduler = Scheduler(clock=clock)
    tick = AsyncMock()
    job = scheduler.add("sweep", timedelta(minutes=5), tick)

    clock.advance(minutes=23)
    assert await scheduler.run_pending() == ["sweep"]
    assert tick.await_count == 1
    assert job.next_run == clock() + timedelta(minutes=2)


@pytest.mark.asyncio
async def test_failing_job_does_not_block_others(clock):
    scheduler = Scheduler(clock=clock)
    broken = AsyncMock(side_effect=RuntimeError("boom"))
    healthy = AsyncMock()
    scheduler.add("broken", timedelta(minutes=1), broken, first_run_delay=timedelta(0))
    scheduler.add("healthy", timedelta(minutes=1), healthy, first_run_delay=timedelta(0))

    assert await scheduler.run_pending() == ["broken", "healthy"]
    healthy.assert_awaited_once()


def test_interval_must_be_positive(clock):
    with pytest.raises(ValueError):
        Scheduler(clock=clock).add("bad", timedelta(0), AsyncMock())


def test_pipeline_scheduler_jobs(clock):
    scheduler = build_pipeline_scheduler(clock=clock)

    jobs = {job.name: job for job in scheduler.jobs}
    assert set(jobs) == {"generation-poller", "notification-sweep"}
    assert jobs["generation-poller"].interval == timedelta(minutes=5)
    assert jobs["generation-poller"].next_run == clock() + timedelta(seconds=5)
    assert jobs["notification-sweep"].interval == timedelta(minutes=5)


@pytest.mark.asyncio
async def test_pipeline_end_to_end(session_factory, payload, clock):
    """Request, generation tick, release delay, then one notification."""
    async with session_factory() as db:
        request_id = await RequestService(db, clock=clock).create_request("a@example.com", payload)

    text = AsyncMock()
    text.generate.return_value = GenerationResult(content="Reading.", model="test")
    image = AsyncMock()
    image.generate.return_value = GenerationResult(content="aW1hZ2U=")
    storage = AsyncMock()
    storage.upload_png.return_value = None

    result = await run_generation_tick(
        session_factory=session_factory,
        clock=clock,
        image_generator=image,
        text_generator=text,
        storage=storage,
    )
    assert result == {"id": str(request_id), "status": RequestStatus.COMPLETED.value}

    notifier = AsyncMock()
    notifier.send.return_value = "msg-1"

    clock.advance(minutes=599)
    assert await run_notification_sweep(session_factory, clock=clock, notifier=notifier) == 0

    clock.advance(minutes=2)
    assert await run_notification_sweep(session_factory, clock=clock, notifier=notifier) == 1
    assert await run_notification_sweep(session_factory, clock=clock, notifier=notifier) == 0
    notifier.send.assert_awaited_once()

    assert await run_generation_tick(session_factory=session_factory, clock=clock) is None


@pytest.mark.asyncio
async def test_tick_warns_when_request_left_processing(session_factory, payload, clock, monkeypatch, caplog):
    async with session_factory() as db:
        request_id = await RequestService(db, clock=clock).create_request("a@example.com", payload)

    async def claim_only(worker):
        return await worker.queue.claim_next()

    monkeypatch.setattr(GenerationWorker, "run_once", claim_only)

    with caplog.at_level(logging.WARNING):
        result = await run_generation_tick(session_factory=session_factory, clock=clock)

    assert result == {"id": str(request_id), "status": RequestStatus.PROCESSING.value}
    assert f"Request {request_id} left in processing" in caplog.text
