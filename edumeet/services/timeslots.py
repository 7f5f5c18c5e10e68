"""Weekday and time-slot label handling for appointments."""

import re
from datetime import date

WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')

INVALID_TIME_MESSAGE = 'Invalid time format. Use formats like "2:00 PM", "14:00" or "2:00 PM - 3:00 PM".'

_CLOCK_12 = re.compile(r'^(\d{1,2}):(\d{2})\s?(AM|PM)$', re.IGNORECASE)
_CLOCK_24 = re.compile(r'^(\d{1,2}):(\d{2})$')
_RANGE_SEPARATOR = re.compile(r'\s*-\s*')


def _normalize_clock(value: str) -> str:
    match = _CLOCK_12.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12 or minute > 59:
            raise ValueError(INVALID_TIME_MESSAGE)
        return f'{hour}:{minute:02d} {match.group(3).upper()}'

    match = _CLOCK_24.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(INVALID_TIME_MESSAGE)
        meridiem = 'PM' if hour >= 12 else 'AM'
        return f'{hour % 12 or 12}:{minute:02d} {meridiem}'

    raise ValueError(INVALID_TIME_MESSAGE)


def normalize_time_label(value: str) -> str:
    """Normalize a clock time or range to the ``H:MM AM - H:MM PM`` form.

    ``"14:00"`` becomes ``"2:00 PM"`` and ``"3:00 pm-4:00 pm"`` becomes
    ``"3:00 PM - 4:00 PM"``. Raises ``ValueError`` for anything else.
    """
    stripped = value.strip()
    if not stripped:
        raise ValueError('Time is required.')

    parts = _RANGE_SEPARATOR.split(stripped)
    if len(parts) > 2:
        raise ValueError(INVALID_TIME_MESSAGE)

    return ' - '.join(_normalize_clock(part) for part in parts)


def normalize_weekday(value: str) -> str:
    normalized = value.strip().capitalize()
    if normalized not in WEEKDAYS:
        raise ValueError(f'Day must be one of: {", ".join(WEEKDAYS)}.')
    return normalized


def weekday_name(value: date) -> str:
    return WEEKDAYS[value.weekday()]
