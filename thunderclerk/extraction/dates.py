"""Calendar date helpers: canonical timestamp normalization and year correction.

The canonical form is the compact iCal timestamp ``YYYYMMDDTHHMMSS``. Nothing
here performs timezone conversion; only digits are reshaped. Zone handling is
left to whatever sink finally creates the calendar item.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta

CAL_DATE_FORMAT = "%Y%m%dT%H%M%S"
CAL_DATE_RE = re.compile(r"^\d{8}T\d{6}$")

# Reference strings embedded in prompts, e.g. "02/20/2026, 14:05:00"
PROMPT_DATETIME_FORMAT = "%m/%d/%Y, %H:%M:%S"

_TRAILING_Z_RE = re.compile(r"Z$", re.IGNORECASE)
_TRAILING_OFFSET_RE = re.compile(r"[+-]\d{4}$")
_TRAILING_FRACTION_RE = re.compile(r"\.\d+$")
_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")


def normalize_cal_date(value: str | None) -> str | None:
    """Normalize a model-produced date string to ``YYYYMMDDTHHMMSS``.

    Handles:

    - ``2026-02-25T14:00:00`` (ISO 8601)
    - ``2026-02-25T14:00:00Z`` (UTC suffix)
    - ``2026-02-25T14:00:00+0530`` / ``+05:30`` (offset, dropped)
    - ``2026-02-25T14:00:00.000Z`` (fractional seconds)
    - ``2028-01-10T13`` / ``2028-01-10T13::`` (truncated time, zero-padded)
    - ``20260225T140000`` (already canonical, returned unchanged)
    - ``20260225`` / ``2026-02-25`` (date only, midnight)

    ``None`` and ``""`` are returned as-is.
    """
    if not value:
        return value

    s = value.replace("-", "").replace(":", "")
    s = _TRAILING_Z_RE.sub("", s)
    s = _TRAILING_OFFSET_RE.sub("", s)
    s = _TRAILING_FRACTION_RE.sub("", s)

    t_idx = s.find("T")
    if t_idx == -1:
        return s[:8] + "T000000"

    date_part = s[:t_idx][:8]
    time_part = s[t_idx + 1 :][:6].ljust(6, "0")
    return f"{date_part}T{time_part}"


def is_cal_date(value: object) -> bool:
    """Return True if *value* is a canonical ``YYYYMMDDTHHMMSS`` string."""
    return isinstance(value, str) and bool(CAL_DATE_RE.match(value))


def parse_cal_date(value: str) -> datetime | None:
    """Parse a canonical timestamp, returning None for anything else."""
    if not is_cal_date(value):
        return None
    try:
        return datetime.strptime(value, CAL_DATE_FORMAT)
    except ValueError:
        return None


def advance_past_year(cal_date: str | None, ref_year: int | None) -> str | None:
    """Roll a canonical date forward to *ref_year* when the model put it earlier.

    Small models frequently invent a training-data year (2022, 2023) for
    emails that never mention one. A date whose year is below *ref_year* is
    moved to *ref_year* with month, day and time unchanged. Feb 29 landing in
    a non-leap year becomes Feb 28. Dates already in or after *ref_year*, and
    values that are not canonical timestamps, are returned unchanged.
    """
    if not cal_date or not ref_year or not is_cal_date(cal_date):
        return cal_date

    year = int(cal_date[:4])
    if year >= ref_year:
        return cal_date

    month = int(cal_date[4:6])
    day = int(cal_date[6:8])
    if month == 2 and day == 29 and not calendar.isleap(ref_year):
        day = 28
    return f"{ref_year:04d}{month:02d}{day:02d}{cal_date[8:]}"


def add_hours_to_cal_date(cal_date: str, hours: float) -> str:
    """Shift a canonical timestamp by *hours*; non-canonical input is returned unchanged."""
    parsed = parse_cal_date(cal_date)
    if parsed is None:
        return cal_date
    return (parsed + timedelta(hours=hours)).strftime(CAL_DATE_FORMAT)


def format_datetime(value: datetime | None) -> str:
    """Render a mail date for prompts; None falls back to the current time."""
    if value is None:
        return current_datetime()
    return value.strftime(PROMPT_DATETIME_FORMAT)


def current_datetime(now: datetime | None = None) -> str:
    """Render the "current date" reference passed to the model."""
    return (now or datetime.now()).strftime(PROMPT_DATETIME_FORMAT)


def reference_year(current: str) -> int | None:
    """Extract the year from a reference string such as ``02/20/2026`` or ``02/20/2026, 14:05:00``."""
    match = _YEAR_RE.search(current or "")
    return int(match.group(1)) if match else None


def default_due_date(days: int, today: date | None = None) -> str:
    """Fallback task due date: *days* from today at noon."""
    future = (today or date.today()) + timedelta(days=days)
    return f"{future:%Y%m%d}T120000"
