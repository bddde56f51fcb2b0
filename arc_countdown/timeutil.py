import math
import re
from datetime import datetime, time as dt_time, timezone
from typing import Optional, Tuple

SUPPORTED_FORMATS = (
    "3am", "3pm", "12am", "12pm",
    "15:00", "00:30", "23:59",
    "3:30pm", "11:45am",
)

_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?(am|pm)?$")


class InvalidTimeFormat(ValueError):
    """Raised when a human time string can't be turned into an hour/minute pair."""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(
            f'Invalid time format: "{raw}". Use formats like: "3am", "15:00", "3:30pm"'
        )


def parse_time(text: str) -> Tuple[int, int]:
    """
    Parse "3am", "3:30pm", "15:00" or "9" into (hour, minute).

    am/pm selects 12-hour parsing; a bare number is an hour on the hour.
    Anything non-numeric is rejected outright.
    """
    cleaned = re.sub(r"\s+", "", (text or "").lower())
    m = _TIME_RE.match(cleaned)
    if not m:
        raise InvalidTimeFormat(text)

    hour = int(m.group(1))
    minute = int(m.group(2)) if m.group(2) is not None else 0
    suffix = m.group(3)

    if suffix == "pm" and hour != 12:
        hour += 12
    elif suffix == "am" and hour == 12:
        hour = 0

    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise InvalidTimeFormat(text)
    return hour, minute


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def time_to_cron(text: str) -> str:
    """Seconds-first cron expression, e.g. "3pm" -> "0 0 15 * * *"."""
    hour, minute = parse_time(text)
    return f"0 {minute} {hour} * * *"


def daily_time(text: str) -> dt_time:
    hour, minute = parse_time(text)
    return dt_time(hour=hour, minute=minute, tzinfo=timezone.utc)


def validate_time_input(text: str) -> Tuple[bool, Optional[str]]:
    try:
        parse_time(text)
    except InvalidTimeFormat as e:
        return False, str(e)
    return True, None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_remaining(target: datetime, now: Optional[datetime] = None) -> int:
    """Whole days left until target, rounded up and never below zero."""
    if now is None:
        now = _utc_now()
    seconds = (target - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def has_passed(target: datetime, now: Optional[datetime] = None) -> bool:
    if now is None:
        now = _utc_now()
    return now >= target


def parse_release_date(raw: str) -> datetime:
    """ISO-8601 -> aware datetime. A trailing Z is accepted; naive values are UTC."""
    value = (raw or "").strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_release_date(dt: datetime) -> str:
    """October 30, 2025"""
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"
