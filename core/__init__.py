"""
Core Module Package.

Shared infrastructure used by every monitoring package.

Components:
- clock: Injectable UTC time abstraction
- formatting: Display helpers
- logging_config: Root logger setup
"""

from .clock import ClockProtocol, SystemClock, MockClock
from .formatting import format_number
from .logging_config import setup_logging


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "format_number",
    "setup_logging",
]
