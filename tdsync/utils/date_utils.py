"""
Centralized date/time utilities for the user's timezone
All date/time operations should use functions from this module
"""

from datetime import datetime, timezone, timedelta, tzinfo
from tdsync.config.settings import settings


def get_user_timezone() -> tzinfo:
    """
    Get the user's timezone
    
    Returns:
        Fixed offset from USER_TIMEZONE_OFFSET, or the system local timezone
    """
    if settings.USER_TIMEZONE_OFFSET:
        return timezone(timedelta(hours=float(settings.USER_TIMEZONE_OFFSET)))
    return datetime.now().astimezone().tzinfo


def get_current_datetime() -> datetime:
    """Get current datetime in the user's timezone"""
    return datetime.now(get_user_timezone())


def get_current_date_str() -> str:
    """
    Get current date string (YYYY-MM-DD)
    
    Returns:
        Current date as string in format YYYY-MM-DD
    """
    return get_current_datetime().strftime("%Y-%m-%d")


def get_current_year() -> int:
    return get_current_datetime().year
