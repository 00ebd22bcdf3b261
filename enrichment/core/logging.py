"""
Logging utilities for the analysis orchestrator and its command-line entry points.

Provides a consistent logging format and configuration.
"""

import logging
import sys
from typing import TextIO


def configure_logging(level: str = "INFO", *, stream: TextIO | None = None) -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=stream or sys.stdout,
    )
    # The provider SDK logs every HTTP request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
