"""Deployment time windows.

An ``active`` window allows deployment only inside its days and hours; a
``blocked`` window forbids deployment inside them. Days and hours are read
in the window's own time zone.
"""

from __future__ import annotations

import datetime as dt
import typing as typ
import zoneinfo

from appsub.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from appsub.models import HourRange, TimeWindow

logger = get_logger(__name__)

_DAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
_MIN_DAY_PREFIX = 3

__all__ = ["in_window", "is_blocked", "parse_clock"]


def parse_clock(value: str) -> dt.time:
    """Parse a ``09:30AM`` style clock value.

    Raises
    ------
    ValueError
        If ``value`` is not a 12-hour clock reading.

    """
    compact = value.replace(" ", "").upper()
    return dt.datetime.strptime(compact, "%I:%M%p").time()  # noqa: DTZ007


def _day_index(name: str) -> int | None:
    lowered = name.strip().lower()
    for index, day in enumerate(_DAYS):
        if len(lowered) >= _MIN_DAY_PREFIX and day.startswith(lowered):
            return index
    return None


def _zone(location: str) -> dt.tzinfo:
    if not location:
        return dt.UTC
    try:
        return zoneinfo.ZoneInfo(location)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        log_warning(logger, "Unknown time window location %r; using UTC", location)
        return dt.UTC


def _in_range(hours: HourRange, clock: dt.time) -> bool | None:
    try:
        start = parse_clock(hours.start)
        end = parse_clock(hours.end)
    except ValueError:
        log_warning(
            logger, "Ignoring invalid hour range %s-%s", hours.start, hours.end
        )
        return None
    if start <= end:
        return start <= clock <= end
    return clock >= start or clock <= end


def in_window(window: TimeWindow, now: dt.datetime) -> bool:
    """Return True when ``now`` falls inside the window's days and hours.

    Empty day and hour lists match every day and every hour.
    """
    local = now.astimezone(_zone(window.location))

    days = [
        index
        for name in window.daysofweek
        if (index := _day_index(name)) is not None
    ]
    if days and local.weekday() not in days:
        return False

    checks = [_in_range(hours, local.time()) for hours in window.hours]
    valid = [check for check in checks if check is not None]
    if not valid:
        return True
    return any(valid)


def is_blocked(window: TimeWindow | None, now: dt.datetime) -> bool:
    """Return True when ``window`` forbids deploying at ``now``."""
    if window is None or (not window.daysofweek and not window.hours):
        return False
    inside = in_window(window, now)
    if window.windowtype == "blocked":
        return inside
    return not inside
