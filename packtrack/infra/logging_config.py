"""Process-wide logging setup shared by the API and the celery workers."""

import logging
import sys

from packtrack.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    """Configure the root logger once per process."""

    _configured = False

    def __init__(self, level: str | None = None) -> None:
        if LoggingConfig._configured:
            return
        level_name = (level or get_settings().log_level).upper()
        logging.basicConfig(
            level=getattr(logging, level_name, logging.INFO),
            format=LOG_FORMAT,
            stream=sys.stdout,
        )
        # Keep third-party chatter out of application logs
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        LoggingConfig._configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"packtrack.{name}")
