"""Logging setup shared by the splatcam CLIs."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure(log_level: int = logging.INFO) -> None:
    """Configure root logging for a CLI run.

    The SPLATCAM_LOG_LEVEL environment variable (e.g. "DEBUG") takes precedence
    over `log_level`.
    """
    override = os.environ.get("SPLATCAM_LOG_LEVEL", "").strip().upper()
    if override:
        level = logging.getLevelName(override)
        if isinstance(level, int):
            log_level = level

    logging.basicConfig(level=log_level, format=LOG_FORMAT, force=True)
