# Import celery app first
from packtrack.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from packtrack.infra.logging_config import LoggingConfig
from packtrack.tasks.metadata_refresh_task import refresh_metadata_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "refresh_metadata_task",
]
