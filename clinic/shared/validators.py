"""Shared validation utilities"""

from datetime import date, datetime, time
from typing import Optional, Union


def parse_time_of_day(value: Union[str, time]) -> time:
    """
    Parse an HH:MM time of day.

    Raises:
        ValueError: If the value is not a valid HH:MM string
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM") from e


def parse_date(value: Union[str, date]) -> date:
    """
    Parse a YYYY-MM-DD calendar date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def normalize_local_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO datetime and treat it as naive clinic-local time.
    Timezone suffixes are dropped, the clinic runs in a single timezone.
    """
    if isinstance(value, str):
        value = value.strip().replace("Z", "")
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValueError(f"Invalid datetime '{value}'") from e
    return value.replace(tzinfo=None)


def validate_granularity(minutes: int) -> int:
    """Slot length must be a positive number of minutes that fits in a day."""
    if not isinstance(minutes, int) or minutes <= 0 or minutes > 24 * 60:
        raise ValueError("Slot granularity must be between 1 and 1440 minutes")
    return minutes


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Strip surrounding whitespace; empty strings become None."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValueError(f"Value exceeds {max_length} characters")
    return value
