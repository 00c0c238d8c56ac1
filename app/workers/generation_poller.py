"""
Generation Poller Worker.

Claims and processes one queued generation request per tick.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from app.clock import Clock, utcnow
from app.database import get_db_context
from app.services.generation_worker import GenerationWorker
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_generation_tick(
    session_factory: Callable = get_db_context,
    clock: Clock = utcnow,
    **worker_kwargs: Any,
) -> Optional[Dict[str, str]]:
    """Process at most one request. Returns its id and final status."""
    async with session_factory() as db:
        worker = GenerationWorker(db, clock=clock, **worker_kwargs)
        request = await worker.run_once()
        if request is None:
            return None
        if not request.request_status.is_terminal:
            logger.warning(f"Request {request.id} left in {request.status} after tick")
        return {"id": str(request.id), "status": request.status}


@celery_app.task(bind=True)
def process_generation_queue(self):
    """
    Celery task for one poller tick.

    No retry: a failed request stays failed, the next tick moves on.
    """
    try:
        result = asyncio.run(run_generation_tick())
    except Exception as e:
        logger.error(f"Generation tick failed: {e}", exc_info=True)
        raise
    if result:
        logger.info(f"Generation tick processed {result['id']} -> {result['status']}")
    return result
