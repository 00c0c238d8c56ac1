"""
Tests for JobQueue claim semantics.
"""

import uuid

import pytest

from app.clock import ensure_utc
from app.fsm.states import RequestStatus
from app.schemas import parse_submission
from app.services.job_queue import JobQueue, sources_of, truncate_error


async def _enqueue(queue, owner, payload):
    return await queue.enqueue(owner, parse_submission(payload))


@pytest.mark.asyncio
async def test_enqueue_conflict_returns_none(db, payload, clock):
    queue = JobQueue(db, clock=clock)

    assert await _enqueue(queue, "a@example.com", payload) is not None
    assert await _enqueue(queue, "a@example.com", payload) is None


@pytest.mark.asyncio
async def test_claim_next_empty_queue(db, clock):
    queue = JobQueue(db, clock=clock)
    assert await queue.claim_next() is None


@pytest.mark.asyncio
async def test_claim_is_fifo(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    first = await _enqueue(queue, "first@example.com", payload)
    clock.advance(seconds=1)
    second = await _enqueue(queue, "second@example.com", payload)

    claimed = await queue.claim_next()
    assert claimed.id == first
    assert claimed.status == RequestStatus.PROCESSING.value
    assert ensure_utc(claimed.claimed_at) == clock()

    claimed = await queue.claim_next()
    assert claimed.id == second


@pytest.mark.asyncio
async def test_request_is_claimed_once(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)

    claims = [await queue.claim_next() for _ in range(3)]
    claimed_ids = [c.id for c in claims if c is not None]

    assert claimed_ids == [request_id]


@pytest.mark.asyncio
async def test_second_poller_cannot_claim(session_maker, payload, clock):
    """Two pollers with separate sessions: only one wins the request."""
    async with session_maker() as setup:
        request_id = await _enqueue(JobQueue(setup, clock=clock), "a@example.com", payload)

    async with session_maker() as first_session:
        winner = await JobQueue(first_session, clock=clock).claim_next()

    async with session_maker() as second_session:
        loser = await JobQueue(second_session, clock=clock).claim_next()

    assert winner.id == request_id
    assert loser is None


@pytest.mark.asyncio
async def test_fail_truncates_error(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)
    await queue.claim_next()

    assert await queue.fail(request_id, "x" * 5000) is True

    request = await queue.get(request_id)
    assert request.status == RequestStatus.FAILED.value
    assert len(request.error) == 2000


@pytest.mark.asyncio
async def test_complete_requires_processing(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)

    # Still queued
    assert await queue.complete(request_id, uuid.uuid4()) is False
    assert (await queue.get(request_id)).status == RequestStatus.QUEUED.value


@pytest.mark.asyncio
async def test_terminal_requests_do_not_move(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)
    await queue.claim_next()
    await queue.fail(request_id, "first failure")

    assert await queue.fail(request_id, "second failure") is False
    request = await queue.get(request_id)
    assert request.error == "first failure"


@pytest.mark.asyncio
async def test_failed_request_is_not_reclaimed(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)
    await queue.claim_next()
    await queue.fail(request_id, "boom")

    assert await queue.claim_next() is None
    assert [r.id for r in await queue.list_failed()] == [request_id]


@pytest.mark.asyncio
async def test_queued_request_cannot_fail_directly(db, payload, clock):
    queue = JobQueue(db, clock=clock)
    request_id = await _enqueue(queue, "a@example.com", payload)

    assert await queue.fail(request_id, "too early") is False
    request = await queue.get(request_id)
    assert request.status == RequestStatus.QUEUED.value
    assert request.error is None


def test_sources_follow_transitions():
    assert sources_of(RequestStatus.PROCESSING) == ["queued"]
    assert sources_of(RequestStatus.COMPLETED) == ["processing"]
    assert sources_of(RequestStatus.FAILED) == ["processing"]
    assert sources_of(RequestStatus.QUEUED) == []


def test_truncate_error_short_message_unchanged():
    assert truncate_error("boom") == "boom"
    assert truncate_error("abcdef", limit=3) == "abc"
