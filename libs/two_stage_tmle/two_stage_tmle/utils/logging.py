"""Logging setup for scripts and notebooks using the library."""

import logging
import sys
from typing import Optional

from ..core.config import TwoStageTMLEConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    config: Optional[TwoStageTMLEConfig] = None, level: Optional[str | int] = None
) -> None:
    """Set up logging configuration.

    The library itself only creates module loggers; applications call this
    once to route their records to stdout.
    """
    if config is None:
        config = TwoStageTMLEConfig()
    log_level = level if level is not None else config.log_level
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # scikit-learn and statsmodels are chatty at DEBUG
    logging.getLogger("sklearn").setLevel(max(log_level, logging.INFO))
    logging.getLogger("statsmodels").setLevel(max(log_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def progress_level(verbose: bool) -> int:
    """Level for progress messages: INFO when verbose, DEBUG otherwise."""
    return logging.INFO if verbose else logging.DEBUG
