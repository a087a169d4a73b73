"""Logging configuration."""

import logging
import sys
from typing import Optional

from fundfolio.config.settings import get_settings

# Fetches and per-holding valuations run on worker threads; the thread name
# tells a valuation-fetch line from a portfolio fan-out line.
LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging; `level` overrides the configured log level."""
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("fundfolio").setLevel(getattr(logging, level_name))

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
