"""Services package."""

from app.services.job_queue import JobQueue, IdempotencyGuard
from app.services.release_scheduler import ReleaseScheduler, ArtifactVisibility
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.reading_service import ReadingCache, HoroscopeService
from app.services.generation_worker import GenerationWorker
from app.services.request_service import RequestService

__all__ = [
    "JobQueue",
    "IdempotencyGuard",
    "ReleaseScheduler",
    "ArtifactVisibility",
    "NotificationDispatcher",
    "ReadingCache",
    "HoroscopeService",
    "GenerationWorker",
    "RequestService",
]
