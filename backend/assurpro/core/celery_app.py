from celery import Celery
from celery.schedules import crontab

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

celery_app = Celery(
    "assurpro",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    imports=("assurpro.services.renewals",),
    beat_schedule={
        # Daily sweep: expire lapsed contracts and queue renewal reminders
        "scan-upcoming-renewals": {
            "task": "assurpro.services.renewals.scan_upcoming_renewals",
            "schedule": crontab(hour=6, minute=0),
        },
    },
)
