"""Celery application: scheduled garbage collection worker entrypoint."""

from celery import Celery

from core.config import settings

celery_app = Celery(
    "image_store_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["worker.tasks.gc"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Periodic unattended collection; off unless GC_SCHEDULE_SECONDS is set
if settings.GC_SCHEDULE_SECONDS > 0:
    celery_app.conf.beat_schedule = {
        "collect-unreferenced-images": {
            "task": "gc.collect_unreferenced",
            "schedule": settings.GC_SCHEDULE_SECONDS,
        },
    }
