"""Validation and logging utilities."""

from .logging import get_logger, progress_level, setup_logging
from .validation import (
    as_vector,
    validate_binary,
    validate_lengths,
    validate_probabilities,
)

__all__ = [
    "as_vector",
    "get_logger",
    "progress_level",
    "setup_logging",
    "validate_binary",
    "validate_lengths",
    "validate_probabilities",
]
