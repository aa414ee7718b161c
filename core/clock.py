"""
core/clock.py -- The one place the system reads the wall clock.

Services take a Clock in their constructor (default utc_now) so tests can
move time forward without sleeping.
"""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
