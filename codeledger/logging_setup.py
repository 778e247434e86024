"""Logging for the code ledger service.

One stdout handler on the root logger; every module logs through
`logging.getLogger(__name__)`. The level comes from `CODES_LOG_LEVEL`
(default INFO). Uvicorn keeps its own loggers on the same handler, and the
per-request lines of the GitHub HTTP client are held back to warnings since
the store already logs each outcome.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _level_from_env() -> str:
    level = (os.environ.get("CODES_LOG_LEVEL") or "INFO").strip().upper()
    return level if level in _LEVELS else "INFO"


def _dict_config(level: str) -> dict:
    console = {"level": level, "handlers": ["console"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "codeledger": {"level": level},
            "uvicorn": dict(console),
            "uvicorn.access": dict(console),
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Install the stdout handler unless the root logger already has one.

    Running twice (reloaders, pytest's capture handlers) must not duplicate
    output.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config((level or _level_from_env()).upper()))
