"""
Shared utility functions for ShiftTrack application.
"""

import os
import re
import sys
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from platformdirs import user_data_dir

HHMM_PATTERN = re.compile(r'^\d{2}:\d{2}$')

PERIODS = ('week', 'month', 'year')


class InvalidTimeFormat(ValueError):
    """User-supplied time of day is not a zero-padded HH:MM value"""
    pass


def get_resource_path(relative_path: str) -> Path:
    """Get absolute path to a bundled read-only resource (icons etc.)"""
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        base_path = Path(sys._MEIPASS)
    else:
        # Running in development - go up from shared/ to project root
        base_path = Path(__file__).parent.parent

    return base_path / relative_path


def get_data_path(relative_path: str) -> Path:
    """Get absolute path to writable data files (databases, logs).

    Uses the per-user data directory from platformdirs. The
    SHIFTTRACK_DATA_DIR environment variable overrides it.
    """
    override = os.getenv('SHIFTTRACK_DATA_DIR')
    if override:
        base_path = Path(override)
    else:
        base_path = Path(user_data_dir("ShiftTrack"))

    base_path.mkdir(parents=True, exist_ok=True)
    return base_path / relative_path


# Instants

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as device-local time"""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def format_instant(dt: datetime) -> str:
    """Format an instant as an ISO-8601 UTC string"""
    return ensure_aware(dt).astimezone(timezone.utc).isoformat()


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 instant, return None if missing or invalid"""
    if not value or not isinstance(value, str):
        return None
    try:
        return ensure_aware(datetime.fromisoformat(value.replace('Z', '+00:00')))
    except ValueError:
        return None


def format_datetime(dt: datetime) -> str:
    """Format datetime to standard string format (logs, settings)"""
    return dt.strftime('%Y-%m-%d %H:%M:%S')


# Times of day

def validate_hhmm(value: str) -> str:
    """Validate a zero-padded 24h HH:MM string, raising InvalidTimeFormat"""
    if not isinstance(value, str) or not HHMM_PATTERN.match(value.strip()):
        raise InvalidTimeFormat(f"Time must be in HH:MM format, got {value!r}")
    value = value.strip()
    hours, minutes = int(value[:2]), int(value[3:])
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat(f"Time out of range: {value!r}")
    return value


def format_hhmm(dt: datetime) -> str:
    """Local time of day of an instant as HH:MM"""
    return ensure_aware(dt).astimezone().strftime('%H:%M')


def parse_custom_time(value: str, today: Optional[date] = None) -> datetime:
    """Combine an HH:MM string with today's local date"""
    value = validate_hhmm(value)
    today = today or datetime.now().date()
    local = datetime.combine(today, time(int(value[:2]), int(value[3:])))
    return local.astimezone()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day as aware datetimes"""
    start = datetime.combine(day, time.min).astimezone()
    end = datetime.combine(day + timedelta(days=1), time.min).astimezone()
    return start, end


def period_start(period: str, today: Optional[date] = None) -> datetime:
    """Start of the current week (Sunday), month or year in local time"""
    if period not in PERIODS:
        raise ValueError(f"Unknown period {period!r}, expected one of {PERIODS}")

    today = today or datetime.now().date()
    if period == 'week':
        # date.weekday() is Monday=0; weeks here start on Sunday
        start_day = today - timedelta(days=(today.weekday() + 1) % 7)
    elif period == 'month':
        start_day = today.replace(day=1)
    else:
        start_day = date(today.year, 1, 1)

    return datetime.combine(start_day, time.min).astimezone()


def format_duration(delta: Union[timedelta, float, None], seconds: bool = True) -> str:
    """Render a duration as '1h 5m 3s' (hours omitted when zero)"""
    if delta is None:
        return "-"
    total = delta.total_seconds() if isinstance(delta, timedelta) else float(delta)
    total = max(0, int(total))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)

    text = f"{h}h " if h else ""
    text += f"{m}m"
    if seconds:
        text += f" {s}s"
    return text
