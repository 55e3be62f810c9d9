"""Logging setup for the CloudDrive API.

Configured once at application startup. Modules log through
``logging.getLogger(__name__)``.
"""

import logging
import logging.config
from typing import Optional

from clouddrive.config import LOG_LEVEL

# third-party loggers that only need to report errors
QUIET_MODULES = ["httpx", "httpcore", "urllib3", "passlib", "asyncio"]


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "clouddrive": {"level": level},
            **{name: {"level": "ERROR"} for name in QUIET_MODULES},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging(level: Optional[str] = None) -> None:
    logging.config.dictConfig(build_logging_config((level or LOG_LEVEL).upper()))
