"""Process-wide logging setup."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> None:
    resolved_level = (level or settings.log_level).upper()
    if resolved_level not in logging.getLevelNamesMapping():
        resolved_level = "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": resolved_level,
                },
            },
            "root": {"handlers": ["console"], "level": resolved_level},
            "loggers": {
                # SQL echo is controlled by the engine, not by the app level.
                "sqlalchemy.engine": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )


__all__ = ["configure_logging"]
