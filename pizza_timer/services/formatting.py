"""Countdown and time-distance formatting for the timer view."""
from typing import Optional

PLACEHOLDER = "--:--"


def format_countdown(total_seconds: Optional[int]) -> str:
    """
    Format a signed number of seconds as a countdown.

    Negative values mean "time since due" and keep their sign.
    One hour or more renders as H:MM:SS, anything shorter as MM:SS.

    Examples:
        format_countdown(None)  -> "--:--"
        format_countdown(125)   -> "02:05"
        format_countdown(-125)  -> "-02:05"
        format_countdown(3725)  -> "1:02:05"
    """
    if total_seconds is None:
        return PLACEHOLDER

    sign = "-" if total_seconds < 0 else ""
    abs_seconds = abs(int(total_seconds))

    hours = abs_seconds // 3600
    minutes = (abs_seconds % 3600) // 60
    seconds = abs_seconds % 60

    if hours > 0:
        return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"
    return f"{sign}{minutes:02d}:{seconds:02d}"


def format_time_distance(minutes: Optional[int]) -> str:
    """Describe a signed minute offset in words ("in 2h 5min", "12 min ago")."""
    if minutes is None:
        return "no data"

    if minutes < 0:
        abs_minutes = abs(minutes)
        if abs_minutes < 60:
            return f"{abs_minutes} min ago"
        return f"{abs_minutes // 60}h {abs_minutes % 60}min ago"

    if minutes == 0:
        return "now!"

    if minutes < 60:
        return f"in {minutes} min"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    if remaining_minutes == 0:
        return f"in {hours}h"
    return f"in {hours}h {remaining_minutes}min"
