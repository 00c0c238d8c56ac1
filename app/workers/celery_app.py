"""
Celery application configuration.
"""

from datetime import timedelta

from celery import Celery
from celery.signals import worker_ready

from app.config import settings

# Create Celery app
celery_app = Celery(
    "soulsketch",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.workers.generation_poller",
        "app.workers.notification_sweep",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # covers image + report generation
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # One queued generation request per tick
    "generation-poller": {
        "task": "app.workers.generation_poller.process_generation_queue",
        "schedule": timedelta(minutes=settings.job_interval_minutes),
    },
    # Ready notifications for released sketches
    "notification-sweep": {
        "task": "app.workers.notification_sweep.send_ready_notifications",
        "schedule": timedelta(minutes=settings.notification_sweep_minutes),
    },
}


@worker_ready.connect
def kick_generation_poller(sender=None, **kwargs):
    """First poller run shortly after start-up instead of a full interval later."""
    celery_app.send_task(
        "app.workers.generation_poller.process_generation_queue",
        countdown=settings.job_first_run_delay_seconds,
    )
