from celery import Celery

from packtrack.config import get_settings

settings = get_settings()

celery_app = Celery(
    "packtrack",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=["packtrack.tasks.metadata_refresh_task"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.is_test,
)
