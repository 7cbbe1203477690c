"""Logging setup for agent_swarm processes.

Console output is human-readable; ``json`` emits one JSON object per line
for log shippers.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Final

from pythonjsonlogger import json as jsonlogger

ROOT_LOGGER: Final = "agent_swarm"
CONSOLE_FORMAT: Final = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
CONSOLE_DATEFMT: Final = "%H:%M:%S"
JSON_FORMAT: Final = "%(timestamp)s %(levelname)s %(name)s %(message)s"


def configure_logging(
    level: str | int = "INFO",
    *,
    fmt: str = "console",
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Install exactly one stream handler on the ``agent_swarm`` logger.

    Calling again replaces the handler, so repeated setup never duplicates output.
    """
    formatter: logging.Formatter
    if fmt == "json":
        formatter = jsonlogger.JsonFormatter(JSON_FORMAT, timestamp=True)
    elif fmt == "console":
        formatter = logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT)
    else:
        msg = f"Unknown log format: {fmt}"
        raise ValueError(msg)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
