"""Date/time normalization utilities.

Every `when` leaving the service is an absolute, timezone-resolved instant rendered in UTC. Relative
phrases ("next friday at 3") are only ever resolved against an injected `now`; nothing here reads
the wall clock.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import dateparser

_ISO_INSTANT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")

_WEEKDAY_NAMES: dict[str, int] = {
    "monday": 0,
    "mon": 0,
    "tuesday": 1,
    "tue": 1,
    "tues": 1,
    "wednesday": 2,
    "wed": 2,
    "thursday": 3,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "friday": 4,
    "fri": 4,
    "saturday": 5,
    "sat": 5,
    "sunday": 6,
    "sun": 6,
}
_WEEKDAY_PATTERN = "|".join(sorted(_WEEKDAY_NAMES, key=lambda s: (-len(s), s)))

_DAY_RE = re.compile(
    rf"\b(?:(?P<rel>today|tonight|tomorrow)|(?:(?:this|next|on)\s+)?(?P<weekday>{_WEEKDAY_PATTERN}))\b"
)

_TIME_RE = re.compile(
    r"\b(?:(?P<noon>noon|midday)|(?P<midnight>midnight)"
    r"|at\s+(?P<h1>\d{1,2})(?::(?P<m1>\d{2}))?\s*(?P<ap1>am|pm)?"
    r"|(?P<h2>\d{1,2})(?::(?P<m2>\d{2}))?\s*(?P<ap2>am|pm)"
    r"|(?P<h3>\d{1,2}):(?P<m3>\d{2}))\b"
)

_CALENDAR_DATE_RE = re.compile(
    r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\b"
    r"|\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b"
    r"|\b\d{4}-\d{2}-\d{2}\b"
)

# A bare hour in this range ("at 3") is read as afternoon.
_AFTERNOON_BARE_HOURS = range(1, 8)


def zone_from_name(name: str | None) -> ZoneInfo | None:
    """Return the IANA zone for `name`, or `None` if it is empty or unknown."""

    if not name or not isinstance(name, str):
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


def parse_instant(value: str, tz: tzinfo | None = None) -> datetime | None:
    """Parse an ISO-8601 date-time into an aware UTC datetime.

    A value without an offset is interpreted in `tz`; without `tz` it is rejected. Date-only
    values and relative phrases are rejected.
    """

    text = (value or "").strip()
    if not _ISO_INSTANT_RE.match(text):
        return None
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            if tz is None:
                return None
            parsed = parsed.replace(tzinfo=tz)
        # Out-of-range instants near year 1 or 9999 overflow here.
        return parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        return None


def _parse_clock(match: re.Match[str]) -> time | None:
    if match.group("noon"):
        return time(12, 0)
    if match.group("midnight"):
        return time(0, 0)

    for suffix in ("1", "2", "3"):
        hour = match.group(f"h{suffix}")
        if hour is None:
            continue
        minute = match.group(f"m{suffix}")
        ampm = match.group(f"ap{suffix}") if suffix != "3" else None
        return _to_time(int(hour), int(minute) if minute else 0, ampm)
    return None


def _to_time(hour: int, minute: int, ampm: str | None) -> time | None:
    if minute > 59:
        return None
    if ampm:
        if not 1 <= hour <= 12:
            return None
        if ampm == "pm" and hour != 12:
            hour += 12
        elif ampm == "am" and hour == 12:
            hour = 0
    elif hour in _AFTERNOON_BARE_HOURS:
        hour += 12
    if hour > 23:
        return None
    return time(hour, minute)


def _resolve_day(match: re.Match[str], today: date) -> date:
    rel = match.group("rel")
    if rel in {"today", "tonight"}:
        return today
    if rel == "tomorrow":
        return today + timedelta(days=1)

    # A named weekday is always its next occurrence after today.
    target = _WEEKDAY_NAMES[match.group("weekday")]
    days_ahead = (target - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def _resolve_calendar_date(expr: str, local_now: datetime, tz: tzinfo) -> datetime | None:
    tz_name = getattr(tz, "key", None)
    if tz_name is None:
        if local_now.utcoffset() != timedelta(0):
            return None
        tz_name = "UTC"

    parsed = dateparser.parse(
        expr,
        languages=["en"],
        settings={
            "RELATIVE_BASE": local_now.replace(tzinfo=None),
            "TIMEZONE": tz_name,
            "TO_TIMEZONE": "UTC",
            "RETURN_AS_TIMEZONE_AWARE": True,
            "PREFER_DATES_FROM": "future",
        },
    )
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def resolve_when(expr: str, *, now: datetime, tz: tzinfo | None = None) -> datetime | None:
    """Resolve a relative or calendar time expression to an absolute UTC instant.

    Supported day forms: `today`, `tonight`, `tomorrow`, `[this|next|on] <weekday>`, and explicit
    calendar dates (delegated to `dateparser`). A clock time is always required; an expression
    without one is unresolvable and returns `None`.

    Args:
        expr: The time expression, e.g. "next friday at 3".
        now: The current instant (must be timezone-aware).
        tz: Zone the expression is stated in; defaults to `now`'s own offset.
    """

    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    value = (expr or "").strip().lower().replace("a.m.", "am").replace("p.m.", "pm")
    clock_match = _TIME_RE.search(value)
    if clock_match is None:
        return None
    clock = _parse_clock(clock_match)
    if clock is None:
        return None

    zone = tz or now.tzinfo
    local_now = now.astimezone(zone)

    day_match = _DAY_RE.search(value)
    if day_match is None and _CALENDAR_DATE_RE.search(value):
        return _resolve_calendar_date(value, local_now, zone)

    if day_match is not None:
        day = _resolve_day(day_match, local_now.date())
    else:
        # Only a clock time: the next time the clock reads that.
        day = local_now.date()
        if datetime.combine(day, clock, tzinfo=zone) <= local_now:
            day += timedelta(days=1)

    return datetime.combine(day, clock, tzinfo=zone).astimezone(UTC)
