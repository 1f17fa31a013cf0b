"""Clinic-local clock.

The clinic runs in one timezone (``CLINIC_TIMEZONE``); datetimes are stored
naive in that zone, so "now" is converted and stripped before comparisons.
"""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from ..config import CLINIC_TIMEZONE

Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    return datetime.now(ZoneInfo(CLINIC_TIMEZONE)).replace(tzinfo=None, microsecond=0)
