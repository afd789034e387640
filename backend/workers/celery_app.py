"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "stockpulse",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.analytics.*": {"queue": "analytics"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        "recalculate-statistics-nightly": {
            "task": "workers.analytics.recalculate_all_statistics",
            "schedule": crontab(hour=1, minute=0),
            "options": {"queue": "analytics"},
        },
        "recalculate-correlations-nightly": {
            "task": "workers.analytics.recalculate_all_correlations",
            "schedule": crontab(hour=2, minute=0),  # After statistics
            "options": {"queue": "analytics"},
        },
        "rebuild-correlations-weekly": {
            "task": "workers.analytics.recalculate_all_correlations",
            "schedule": crontab(hour=3, minute=0, day_of_week="sunday"),
            "kwargs": {"force": True},
            "options": {"queue": "analytics"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"])
