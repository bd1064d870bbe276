"""
Resolve "today / tomorrow / now" plus an optional HH:MM into a concrete start instant.

All civil-day and civil-hour math goes through ZoneInfo conversion so DST
transitions never shift the resolved local hour.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.models.itinerary import PlanDay

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Chicago"
LATE_HOUR = 20
TOMORROW_DEFAULT_START = time(9, 0)


@dataclass(frozen=True)
class ResolvedStart:
    start: datetime  # aware, UTC
    nightMode: bool


def _require_aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        raise ValueError("current instant must be timezone-aware")
    return now.astimezone(timezone.utc)


def parse_clock(value: Optional[str]) -> Optional[time]:
    """Parse 'HH:MM' into a time; None/blank passes through."""
    if not value:
        return None
    try:
        hh, mm = value.strip().split(":")
        return time(int(hh), int(mm))
    except (ValueError, TypeError):
        raise ValueError(f"Invalid start time: {value!r} (expected HH:MM)")


def local_now(now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    return _require_aware(now).astimezone(ZoneInfo(tz_name))


def local_hour(instant: datetime, tz_name: str = DEFAULT_TIMEZONE) -> int:
    return local_now(instant, tz_name).hour


def at_civil_time(day: date, clock: time, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """The instant at which the civil clock in tz_name reads `clock` on `day`, in UTC."""
    local = datetime.combine(day, clock, tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc)


def resolve_start(
    plan_day: PlanDay,
    start_time: Optional[str],
    now: datetime,
    tz_name: str = DEFAULT_TIMEZONE,
    late_hour: int = LATE_HOUR,
) -> ResolvedStart:
    now_utc = _require_aware(now)
    today = local_now(now_utc, tz_name).date()
    clock = parse_clock(start_time)

    if plan_day == PlanDay.now:
        return ResolvedStart(start=now_utc, nightMode=False)

    if plan_day == PlanDay.tomorrow:
        start = at_civil_time(today + timedelta(days=1), clock or TOMORROW_DEFAULT_START, tz_name)
        return ResolvedStart(start=start, nightMode=False)

    # today
    start = now_utc
    if clock is not None:
        requested = at_civil_time(today, clock, tz_name)
        if requested < now_utc:
            logger.info(f"Requested start {start_time} already passed; starting now")
        else:
            start = requested

    night = local_hour(start, tz_name) >= late_hour
    return ResolvedStart(start=start, nightMode=night)


def format_time_label(instant: datetime, tz_name: str = DEFAULT_TIMEZONE, with_day: bool = False) -> str:
    """'9:00 AM', or 'Sat • 9:00 AM' when with_day is set."""
    local = local_now(instant, tz_name)
    hour = local.hour % 12 or 12
    label = f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"
    if with_day:
        label = f"{local.strftime('%a')} • {label}"
    return label
