# app/core/logging.py
from __future__ import annotations

import logging
import sys
from typing import Union

# chatty client libraries: every supabase / provider HTTP call logs at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Stdout logging for the rewards backend. Safe to call more than once."""
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return  # reload / test runner already attached one

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    )
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
