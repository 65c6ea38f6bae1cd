"""Post-processing of decoded model records, per task kind.

All functions take the decoded dict and return it (mutated in place). After
they run, every date field is either absent or canonical and ``forceAllDay``
is a bool.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any

from thunderclerk.extraction.dates import (
    add_hours_to_cal_date,
    advance_past_year,
    default_due_date,
    is_cal_date,
    normalize_cal_date,
)
from thunderclerk.extraction.models import ExtractedRecord, normalize_contact_fields
from thunderclerk.pipeline_config import ActionConfig, AttendeesSource, DescriptionFormat


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _coerce_text(data: dict[str, Any], key: str) -> None:
    """Force a free-text field to ``str``; lists are joined, null drops the key."""
    value = data.get(key)
    if value is None:
        data.pop(key, None)
    elif isinstance(value, list):
        data[key] = ", ".join(str(v) for v in value if v is not None)
    elif not isinstance(value, str):
        data[key] = str(value)


def _coerce_category(data: dict[str, Any]) -> None:
    """One category name or nothing; a list keeps its first string."""
    value = data.get("category")
    if isinstance(value, list):
        value = next((v for v in value if isinstance(v, str)), None)
    if isinstance(value, str):
        data["category"] = value.strip()
    else:
        data.pop("category", None)


def coerce_text_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Make ``summary``, ``description`` and ``category`` plain strings."""
    _coerce_text(data, "summary")
    _coerce_text(data, "description")
    _coerce_category(data)
    return data


def _attendee_address(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("email") or value.get("address") or ""
    return value.strip() if isinstance(value, str) else ""


def _normalize_date_field(data: dict[str, Any], key: str) -> None:
    value = data.get(key)
    if not value:
        data.pop(key, None)
        return
    normalized = normalize_cal_date(str(value))
    if is_cal_date(normalized):
        data[key] = normalized
    else:
        # Not salvageable ("TBD", "next week"); drop rather than pass garbage on.
        data.pop(key, None)


# ---------------------------------------------------------------------------
# Hints and descriptions
# ---------------------------------------------------------------------------


def build_attendees_hint(
    author: str,
    recipients: Sequence[str],
    source: AttendeesSource | str,
    static_email: str = "",
) -> list[str]:
    """Addresses offered to the model as possible attendees.

    Unknown sources behave like ``from_to``.
    """
    if source == AttendeesSource.FROM:
        return [author] if author else []
    if source == AttendeesSource.TO:
        return list(recipients)
    if source == AttendeesSource.STATIC:
        return [static_email] if static_email else []
    if source == AttendeesSource.NONE:
        return []
    hint = [author] if author else []
    hint.extend(recipients)
    return hint


def build_description(
    email_body: str,
    author: str,
    subject: str,
    fmt: DescriptionFormat | str,
) -> str | None:
    """Locally assembled description; None for ``none``.

    Unknown formats behave like ``body_from_subject``. ``ai_summary`` is not
    handled here: the model's own description is used instead.
    """
    if fmt == DescriptionFormat.BODY:
        return email_body
    if fmt == DescriptionFormat.NONE:
        return None
    return f"From: {author}\nSubject: {subject}\n\n{email_body}"


def apply_description(
    data: dict[str, Any],
    fmt: DescriptionFormat,
    email_body: str,
    author: str,
    subject: str,
) -> None:
    if fmt is DescriptionFormat.AI_SUMMARY:
        if not data.get("description"):
            data["description"] = subject
        return
    description = build_description(email_body, author, subject, fmt)
    if description:
        data["description"] = description
    else:
        data.pop("description", None)


# ---------------------------------------------------------------------------
# Calendar events
# ---------------------------------------------------------------------------


def normalize_calendar_data(data: dict[str, Any]) -> dict[str, Any]:
    """Canonicalize event dates and force ``forceAllDay`` to a bool."""
    _normalize_date_field(data, "startDate")
    _normalize_date_field(data, "endDate")
    data["forceAllDay"] = _as_bool(data.get("forceAllDay"))
    attendees = data.get("attendees")
    if isinstance(attendees, str):
        data["attendees"] = [a.strip() for a in attendees.split(",") if a.strip()]
    elif isinstance(attendees, list):
        data["attendees"] = [_attendee_address(a) for a in attendees if _attendee_address(a)]
    else:
        data["attendees"] = []
    return data


def apply_calendar_defaults(data: dict[str, Any]) -> dict[str, Any]:
    """Fill in a missing or inconsistent end and align all-day times.

    - all-day events use midnight for both boundaries;
    - a missing end is the start (all-day) or start + 1 h (timed);
    - an end before the start is replaced by the start.
    """
    start = data.get("startDate")
    if not start:
        return data

    if data.get("forceAllDay"):
        data["startDate"] = start = start[:8] + "T000000"
        if data.get("endDate"):
            data["endDate"] = data["endDate"][:8] + "T000000"

    end = data.get("endDate")
    if not end:
        data["endDate"] = start if data.get("forceAllDay") else add_hours_to_cal_date(start, 1)
    elif end < start:
        data["endDate"] = start
    return data


def advance_record_years(data: dict[str, Any], keys: Sequence[str], ref_year: int | None) -> None:
    for key in keys:
        if data.get(key):
            data[key] = advance_past_year(data[key], ref_year)


def resolve_attendees(data: dict[str, Any], config: ActionConfig) -> None:
    """Override the model's attendee guess for the static and none sources."""
    if config.attendees_source is AttendeesSource.STATIC:
        data["attendees"] = [config.attendees_static] if config.attendees_static else []
    elif config.attendees_source is AttendeesSource.NONE:
        data["attendees"] = []


def extend_all_day_end(data: dict[str, Any]) -> None:
    """All-day events use an exclusive end: the day after the last visible day.

    Only multi-day events are shifted; a single-day event keeps end == start.
    """
    if data.get("forceAllDay") and data.get("endDate") and data["endDate"] != data.get("startDate"):
        data["endDate"] = add_hours_to_cal_date(data["endDate"], 24)


def postprocess_event(
    data: dict[str, Any],
    config: ActionConfig,
    *,
    email_body: str,
    author: str,
    subject: str,
    ref_year: int | None,
) -> ExtractedRecord:
    """Full post-processing of a single event record.

    *ref_year* of None skips year advancement (array extraction keeps the
    email's own years).
    """
    normalize_calendar_data(data)
    coerce_text_fields(data)
    if ref_year is not None:
        advance_record_years(data, ("startDate", "endDate"), ref_year)
    if not data.get("summary"):
        data["summary"] = subject
    apply_calendar_defaults(data)
    apply_description(data, config.description_format, email_body, author, subject)
    if config.default_calendar:
        data["calendar_name"] = config.default_calendar
    resolve_attendees(data, config)
    extend_all_day_end(data)
    return data


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def normalize_task_data(data: dict[str, Any]) -> dict[str, Any]:
    """Canonicalize task dates, folding the ``InitialDate`` spelling into ``initialDate``.

    Tasks carry a boolean ``forceAllDay`` like events do.
    """
    if "InitialDate" in data:
        legacy = data.pop("InitialDate")
        if legacy and not data.get("initialDate"):
            data["initialDate"] = legacy
    _normalize_date_field(data, "dueDate")
    _normalize_date_field(data, "initialDate")
    data["forceAllDay"] = _as_bool(data.get("forceAllDay"))
    return data


def postprocess_task(
    data: dict[str, Any],
    config: ActionConfig,
    *,
    email_body: str,
    author: str,
    subject: str,
    ref_year: int | None,
    today: date | None = None,
) -> ExtractedRecord:
    """Full post-processing of a single task record."""
    normalize_task_data(data)
    coerce_text_fields(data)
    if ref_year is not None:
        advance_record_years(data, ("dueDate", "initialDate"), ref_year)
    if not data.get("summary"):
        data["summary"] = subject
    if not data.get("dueDate") and config.task_default_due_days:
        data["dueDate"] = default_due_date(config.task_default_due_days, today)
    apply_description(data, config.task_description_format, email_body, author, subject)
    return data


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


def postprocess_contact(data: dict[str, Any]) -> ExtractedRecord:
    return normalize_contact_fields(data)
