"""
Time Port.

All timestamps written by the core are timezone-aware UTC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Clock interface injected into components for deterministic tests."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
