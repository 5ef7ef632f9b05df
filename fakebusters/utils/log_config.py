"""Process-level logging setup driven by the LOG_LEVEL environment variable."""

import logging
import os
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_log_level(name: Optional[str] = None) -> int:
    """Map a level name (default: $LOG_LEVEL, then INFO) to a logging constant."""
    level_name = (name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(level: Optional[str] = None) -> int:
    """Configure the root logger once for applications embedding the boards context."""
    log_level = resolve_log_level(level)
    logging.basicConfig(level=log_level, format=DEFAULT_FORMAT)
    logging.getLogger("fakebusters").setLevel(log_level)
    logging.getLogger(__name__).info("logging_configured: log_level=%s", logging.getLevelName(log_level))
    return log_level
