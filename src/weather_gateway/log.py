"""Logging setup.

Modules log through `logging.getLogger(__name__)`; this module only installs
the console handler once at startup (app lifespan or CLI).

Credential secrets, secret hashes and raw header values must never be passed
to a logger. Public ids are safe to log.
"""

from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler on the root logger.

    Safe to call more than once; the configuration is replaced.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": level.upper(),
            },
            "loggers": {
                # Request lines are noisy at INFO
                "httpx": {"level": "WARNING"},
            },
        }
    )
