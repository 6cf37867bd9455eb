import logging
import logging.config
import os
from typing import Optional

LOG_LEVEL_ENV = "LOG_LEVEL"


def get_logging_config(level: Optional[str] = None) -> dict:
    log_level_name = (level or os.getenv(LOG_LEVEL_ENV, "WARNING")).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(name)s - %(message)s",
                "datefmt": "[%X]",
            },
        },
        "handlers": {
            "rich": {
                "class": "rich.logging.RichHandler",
                "formatter": "default",
                "rich_tracebacks": True,
                "show_path": False,
            },
        },
        "loggers": {
            "finance_tracker": {
                "handlers": ["rich"],
                "level": log_level_name,
                "propagate": False,
            },
            "httpx": {
                "handlers": ["rich"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }

def setup_logging(level: Optional[str] = None) -> None:
    logging.config.dictConfig(get_logging_config(level))

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
