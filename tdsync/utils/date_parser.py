"""
Date parsing utilities for in-text dates and Todoist due values
"""

import re
from datetime import datetime
from typing import Optional
from tdsync.config.constants import END_OF_DAY_TIME
from tdsync.utils.date_utils import get_user_timezone, get_current_year
from tdsync.utils.logger import logger

DATE_PATTERN = re.compile(r"^(?:(\d{4}|\d{2})-)?(\d{1,2})-(\d{1,2})$")
TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def normalize_date(date_str: Optional[str], allow_month_day: bool = False) -> Optional[str]:
    """
    Normalize an in-text date to YYYY-MM-DD
    
    Accepts YYYY-MM-DD and YY-MM-DD (two-digit years get a "20" prefix). With
    allow_month_day, MM-DD is accepted too and the current year is inferred.
    
    Args:
        date_str: Date as written in the text
        allow_month_day: Accept dates without a year
        
    Returns:
        Normalized date or None if the value is malformed
    """
    if not date_str:
        return None
    
    match = DATE_PATTERN.match(date_str.strip())
    if not match:
        logger.warning(f"Invalid date format: '{date_str}'")
        return None
    
    year, month, day = match.groups()
    if year is None:
        if not allow_month_day:
            logger.warning(f"Date without year is not allowed here: '{date_str}'")
            return None
        year = str(get_current_year())
    elif len(year) == 2:
        year = f"20{year}"
    
    try:
        parsed = datetime(int(year), int(month), int(day))
    except ValueError:
        logger.warning(f"Date does not exist: '{date_str}'")
        return None
    
    return parsed.strftime("%Y-%m-%d")


def normalize_time(time_str: Optional[str]) -> Optional[str]:
    """
    Normalize an in-text time to HH:MM
    
    Args:
        time_str: Time as written in the text (H:MM or HH:MM)
        
    Returns:
        Zero-padded time or None if the hour or minute is out of range
    """
    if not time_str:
        return None
    
    match = TIME_PATTERN.match(time_str.strip())
    if not match:
        logger.warning(f"Invalid time format: '{time_str}'")
        return None
    
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        logger.warning(f"Time out of range: '{time_str}'")
        return None
    
    return f"{hour:02d}:{minute:02d}"


def _parse_due(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Invalid due value from Todoist: '{value}'")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(get_user_timezone())
    return parsed


def iso_to_local_date(value: Optional[str]) -> Optional[str]:
    """
    Convert a Todoist due value to a local YYYY-MM-DD date
    
    Floating values (no offset) are taken as local already.
    """
    if not value:
        return None
    if len(value) == 10:
        return normalize_date(value)
    parsed = _parse_due(value)
    return parsed.strftime("%Y-%m-%d") if parsed else None


def iso_to_local_time(value: Optional[str]) -> Optional[str]:
    """
    Convert a Todoist due value to a local HH:MM time
    
    Args:
        value: Due date or datetime from Todoist
        
    Returns:
        Time string, or None for date-only and end-of-day values
    """
    if not value or len(value) == 10:
        return None
    parsed = _parse_due(value)
    if parsed is None or parsed.strftime("%H:%M:%S") == END_OF_DAY_TIME:
        return None
    return parsed.strftime("%H:%M")


def format_event_datetime(value: Optional[str]) -> str:
    """Format an event timestamp as local 'YYYY-MM-DD HH:MM'"""
    if not value:
        return ""
    parsed = _parse_due(value)
    return parsed.strftime("%Y-%m-%d %H:%M") if parsed else value
