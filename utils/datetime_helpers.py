"""Timezone-aware date/time helpers for the lending application."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app


def get_timezone() -> ZoneInfo:
    """Get the configured facility timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Europe/Paris')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def get_now_iso() -> str:
    """Current timestamp as stored in TIMESTAMP columns."""
    return get_now().strftime('%Y-%m-%d %H:%M:%S')


def start_of_day(day: date) -> datetime:
    """Midnight of a date in the configured timezone."""
    return datetime(day.year, day.month, day.day, tzinfo=get_timezone())
