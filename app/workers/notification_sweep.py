"""
Notification Sweep Worker.

Sends "sketch ready" emails for artifacts whose release time has passed.
"""

import asyncio
import logging
from typing import Any, Callable

from app.clock import Clock, utcnow
from app.database import get_db_context
from app.services.notification_dispatcher import NotificationDispatcher
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_notification_sweep(
    session_factory: Callable = get_db_context,
    clock: Clock = utcnow,
    **dispatcher_kwargs: Any,
) -> int:
    async with session_factory() as db:
        dispatcher = NotificationDispatcher(db, clock=clock, **dispatcher_kwargs)
        return await dispatcher.sweep()


@celery_app.task(bind=True)
def send_ready_notifications(self):
    """Celery task for one sweep. Unsent notifications wait for the next one."""
    try:
        count = asyncio.run(run_notification_sweep())
    except Exception as e:
        logger.error(f"Notification sweep failed: {e}", exc_info=True)
        raise
    logger.info(f"Sent {count} ready notifications")
    return {"success": True, "count": count}
