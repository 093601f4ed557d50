"""Utility modules."""

from .durations import DurationError, format_duration, parse_duration
from .logger import JsonFormatter, setup_logging

__all__ = [
    "DurationError",
    "format_duration",
    "parse_duration",
    "JsonFormatter",
    "setup_logging",
]
