"""Shared logging helpers for dynasync."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(
    *,
    level: int = logging.INFO,
    log_file: str | Path | None = None,
    force: bool = False,
) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for CLI output. ``log_file`` (or the
    ``DYNASYNC_LOG_FILE`` environment variable) adds a file handler next to the
    console handler. Pass ``force=True`` to reconfigure during tests or specialised
    entry points.
    """

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    target = log_file or os.getenv("DYNASYNC_LOG_FILE")
    if target:
        path = Path(target).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=force,
    )
