from datetime import timedelta

from celery import Celery
from content_hub.config import settings


celery_app = Celery(
    "content_hub",
    broker=settings.CELERY_BROKER_URL,
    include=[
        "content_hub.tasks.share_cleanup",
        ]
)


celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "share-cleanup": {
            "task": "content_hub.tasks.share_cleanup.cleanup_shares",
            "schedule": timedelta(minutes=settings.SHARE_CLEANUP_INTERVAL_MINUTES),
        },
    },
)
