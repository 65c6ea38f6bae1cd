"""Prompt builders, one per task kind.

Every prompt embeds the email and the reference dates, spells out the exact
JSON fields expected, and asks for JSON only. Models do not always comply;
``json_extract`` recovers the payload regardless.
"""

from __future__ import annotations

from collections.abc import Sequence

from thunderclerk.extraction.dates import current_datetime, format_datetime
from thunderclerk.extraction.models import CandidateItem, ExtractionRequest, TaskKind

JSON_ONLY = (
    "Respond with the JSON object only. Do not add explanations, comments, "
    "markdown formatting or any text before or after the JSON."
)

_CATEGORY_GUIDELINES = """\
Select the single most appropriate category for the "category" field using these guidelines:
- Available categories: {categories}
- The subject line is the strongest signal; match it directly if a category fits
- Prefer the most specific matching category (e.g. prefer "Family" over "Personal" or "Miscellaneous" for family events, "Work" or "Business" over "Personal" for professional events)
- Only use a generic category like "Miscellaneous" or "Other" if no specific category clearly applies
- If truly none fit, use an empty string"""


def build_category_instruction(categories: Sequence[str] | None) -> tuple[str, str]:
    """Return ``(instruction, json_line)`` for category selection.

    Both are empty strings when there are no categories, so callers can
    interpolate them unconditionally.
    """
    if not categories:
        return "", ""
    instruction = _CATEGORY_GUIDELINES.format(categories=", ".join(categories))
    return instruction, ',\n  "category": "CategoryName"'


def _email_block(
    body: str, subject: str, author: str = "", recipients: Sequence[str] = ()
) -> str:
    lines = [f"Subject: {subject}"]
    if author:
        lines.append(f"From: {author}")
    if recipients:
        lines.append(f"To: {', '.join(recipients)}")
    lines.append("")
    lines.append("Email body:")
    lines.append('"""')
    lines.append(body)
    lines.append('"""')
    return "\n".join(lines)


def _dates_line(mail_datetime: str, current_dt: str) -> str:
    """Sent-date and current-date context; empty when neither is known."""
    parts = []
    if mail_datetime:
        parts.append(f"The email was sent on {mail_datetime}.")
    if current_dt:
        parts.append(f"The current date is {current_dt}.")
    return " ".join(parts) + "\n\n" if parts else ""


def _selected_previews(candidates: Sequence[CandidateItem], selected: Sequence[int]) -> list[str]:
    """Preview texts of the selected candidates, in selection order, skipping bad indices."""
    previews: list[str] = []
    for idx in selected:
        if 0 <= idx < len(candidates):
            previews.append(candidates[idx].preview)
    return previews


def _numbered(previews: Sequence[str]) -> str:
    return "\n".join(f"{i}. {p}" for i, p in enumerate(previews, 1))


# ---------------------------------------------------------------------------
# Single-item prompts
# ---------------------------------------------------------------------------


def build_calendar_prompt(
    email_body: str,
    subject: str,
    mail_datetime: str,
    current_dt: str,
    attendee_hints: Sequence[str],
    categories: Sequence[str] | None,
    want_description: bool = False,
    *,
    author: str = "",
    recipients: Sequence[str] = (),
) -> str:
    """Prompt for a single calendar event."""
    category_instruction, category_line = build_category_instruction(categories)
    attendees = ", ".join(attendee_hints) if attendee_hints else "(none)"
    description_rule = ""
    description_line = ""
    if want_description:
        description_rule = (
            '- "description": a short, neutral summary of the event (2-3 sentences) '
            "based on the email\n"
        )
        description_line = ',\n  "description": "Short summary of the event"'

    return f"""\
Extract the calendar event described in the email below.

The email was sent on {mail_datetime}. The current date is {current_dt}.
Resolve relative expressions ("tomorrow", "next Tuesday", "in two weeks") against the date the email was sent.
When the email gives a date without a year, use the year of the email's sent date.

{_email_block(email_body, subject, author, recipients)}

Fill in these fields:
- "summary": a short event title
- "startDate": start as YYYY-MM-DDTHH:MM:SS
- "endDate": end as YYYY-MM-DDTHH:MM:SS. If no end time is given, use one hour after the start. For a multi-day event use the last day of the event
- "forceAllDay": true if the email gives no time of day, otherwise false. For all-day events use T00:00:00 as the time
- "attendees": email addresses of people attending, chosen from: {attendees}
{description_rule}{category_instruction}

Return exactly this JSON structure:
{{
  "summary": "Event title",
  "startDate": "YYYY-MM-DDTHH:MM:SS",
  "endDate": "YYYY-MM-DDTHH:MM:SS",
  "forceAllDay": false,
  "attendees": ["address@example.com"]{description_line}{category_line}
}}

{JSON_ONLY}"""


def build_task_prompt(
    email_body: str,
    subject: str,
    mail_datetime: str,
    current_dt: str,
    categories: Sequence[str] | None,
    want_description: bool = False,
    *,
    author: str = "",
    recipients: Sequence[str] = (),
) -> str:
    """Prompt for a single task."""
    category_instruction, category_line = build_category_instruction(categories)
    description_rule = ""
    description_line = ""
    if want_description:
        description_rule = '- "description": a short summary of what has to be done\n'
        description_line = ',\n  "description": "Short summary of the task"'

    return f"""\
Extract the task (to-do item) described in the email below.

The email was sent on {mail_datetime}. The current date is {current_dt}.
Resolve relative deadlines ("by Friday", "next week") against the date the email was sent.
When the email gives a date without a year, use the year of the email's sent date.

{_email_block(email_body, subject, author, recipients)}

Fill in these fields:
- "summary": a short task title
- "dueDate": deadline as YYYY-MM-DDTHH:MM:SS; omit the field if there is no deadline
- "initialDate": start date as YYYY-MM-DDTHH:MM:SS; omit the field if none is mentioned
{description_rule}{category_instruction}

Return exactly this JSON structure:
{{
  "summary": "Task title",
  "dueDate": "YYYY-MM-DDTHH:MM:SS",
  "initialDate": "YYYY-MM-DDTHH:MM:SS"{description_line}{category_line}
}}

{JSON_ONLY}"""


def build_draft_reply_prompt(
    email_body: str,
    subject: str,
    author: str,
    mail_datetime: str = "",
    current_dt: str = "",
) -> str:
    """Prompt for a reply draft; the model returns only ``body``."""
    return f"""\
Write a polite, concise reply to the email below on behalf of its recipient.
Answer any direct questions, keep the tone of the original, and do not invent facts, dates or commitments.
Do not include a subject line or a signature placeholder.

{_dates_line(mail_datetime, current_dt)}{_email_block(email_body, subject, author)}

Return exactly this JSON structure:
{{
  "body": "The reply text"
}}

{JSON_ONLY}"""


def build_summarize_forward_prompt(
    email_body: str,
    subject: str,
    author: str,
    mail_datetime: str = "",
    current_dt: str = "",
) -> str:
    """Prompt for a forwarding summary; the model returns only ``summary``."""
    return f"""\
Summarize the email below for someone it is being forwarded to.
Use a few short sentences or bullet points covering the key facts, requests and deadlines.

{_dates_line(mail_datetime, current_dt)}{_email_block(email_body, subject, author)}

Return exactly this JSON structure:
{{
  "summary": "The summary text"
}}

{JSON_ONLY}"""


_CONTACT_FIELDS = """\
  "firstName": "First name",
  "lastName": "Last name",
  "email": "address@example.com",
  "phone": "Phone number",
  "company": "Company or organization",
  "jobTitle": "Job title",
  "website": "https://example.com\""""


def build_contact_prompt(
    email_body: str,
    subject: str,
    author: str,
    mail_datetime: str = "",
    current_dt: str = "",
) -> str:
    """Prompt for the sender's contact details, typically from a signature block."""
    return f"""\
Extract the contact details of the person who wrote the email below.
Look at the signature block and the From line. Every field is optional: use an empty string for anything not present in the email.

{_dates_line(mail_datetime, current_dt)}{_email_block(email_body, subject, author)}

Return exactly this JSON structure:
{{
{_CONTACT_FIELDS}
}}

{JSON_ONLY}"""


# ---------------------------------------------------------------------------
# Two-stage analysis prompts
# ---------------------------------------------------------------------------


def build_analysis_prompt(
    email_body: str,
    subject: str,
    author: str,
    mail_datetime: str,
    current_dt: str,
) -> str:
    """Stage 1: overview plus preview stubs of every event, task and contact."""
    return f"""\
Analyze the email below and list everything in it that could become a calendar event, a task or a contact.

The email was sent on {mail_datetime}. The current date is {current_dt}.
IMPORTANT: keep every date exactly as written in the email, including its year.
Do not move dates to the current year and do not recalculate them relative to today. Old emails describe past events; that is expected.
When the email omits a year, use the year of the email's sent date.

{_email_block(email_body, subject, author)}

Fill in these fields:
- "summary": two or three sentences describing the email
- "events": one entry per distinct event or session; sessions of the same event on different dates are separate entries
- "tasks": one entry per action the reader is asked to take
- "contacts": one entry per person whose contact details appear in the email
Each entry is an object with a single "preview" string: a short label with the name and date/time as written in the email (e.g. "Team Meeting - Mar 5, 2026, 2pm").
Use an empty array when there is nothing for a group.

Return exactly this JSON structure:
{{
  "summary": "Short overview",
  "events": [{{"preview": "Event name - date, time"}}],
  "tasks": [{{"preview": "Task - deadline"}}],
  "contacts": [{{"preview": "Name - company, role"}}]
}}

{JSON_ONLY}"""


def build_calendar_array_prompt(
    email_body: str,
    subject: str,
    mail_datetime: str,
    current_dt: str,
    attendee_hints: Sequence[str],
    categories: Sequence[str] | None,
    want_description: bool,
    detected: Sequence[CandidateItem],
    selected: Sequence[int],
    *,
    author: str = "",
    recipients: Sequence[str] = (),
) -> str:
    """Stage 2: full event records for the selected previews only."""
    category_instruction, category_line = build_category_instruction(categories)
    attendees = ", ".join(attendee_hints) if attendee_hints else "(none)"
    description_line = ',\n      "description": "Short summary"' if want_description else ""
    item_category_line = category_line.replace("\n", "\n    ")
    return f"""\
Create one calendar event for each of the following items found in the email below:
{_numbered(_selected_previews(detected, selected))}

The email was sent on {mail_datetime}. The current date is {current_dt}.
Use the dates exactly as written in the email, including the email's year. Do not move events to the current year.

{_email_block(email_body, subject, author, recipients)}

Rules for every event:
- "startDate" and "endDate" as YYYY-MM-DDTHH:MM:SS; if no end time is given use one hour after the start
- "forceAllDay": true when no time of day is given, with T00:00:00 as the time
- "attendees": chosen from: {attendees}
{category_instruction}

Return exactly this JSON structure, with one entry per item listed above, in the same order:
{{
  "events": [
    {{
      "summary": "Event title",
      "startDate": "YYYY-MM-DDTHH:MM:SS",
      "endDate": "YYYY-MM-DDTHH:MM:SS",
      "forceAllDay": false,
      "attendees": []{description_line}{item_category_line}
    }}
  ]
}}

{JSON_ONLY}"""


def build_task_array_prompt(
    email_body: str,
    subject: str,
    mail_datetime: str,
    current_dt: str,
    categories: Sequence[str] | None,
    want_description: bool,
    detected: Sequence[CandidateItem],
    selected: Sequence[int],
    *,
    author: str = "",
    recipients: Sequence[str] = (),
) -> str:
    """Stage 2: full task records for the selected previews only."""
    category_instruction, category_line = build_category_instruction(categories)
    description_line = ',\n      "description": "Short summary"' if want_description else ""
    item_category_line = category_line.replace("\n", "\n    ")
    return f"""\
Create one task for each of the following items found in the email below:
{_numbered(_selected_previews(detected, selected))}

The email was sent on {mail_datetime}. The current date is {current_dt}.
Use the dates exactly as written in the email, including the email's year.

{_email_block(email_body, subject, author, recipients)}

Rules for every task:
- "dueDate" and "initialDate" as YYYY-MM-DDTHH:MM:SS; omit a field when the email gives no such date
{category_instruction}

Return exactly this JSON structure, with one entry per item listed above, in the same order:
{{
  "tasks": [
    {{
      "summary": "Task title",
      "dueDate": "YYYY-MM-DDTHH:MM:SS",
      "initialDate": "YYYY-MM-DDTHH:MM:SS"{description_line}{item_category_line}
    }}
  ]
}}

{JSON_ONLY}"""


def build_contact_array_prompt(
    email_body: str,
    subject: str,
    author: str,
    detected: Sequence[CandidateItem],
    selected: Sequence[int],
) -> str:
    """Stage 2: full contact records for the selected previews only."""
    fields = _CONTACT_FIELDS.replace("\n", "\n    ")
    return f"""\
Extract the contact details of each of the following people mentioned in the email below:
{_numbered(_selected_previews(detected, selected))}

Every field is optional: use an empty string for anything not present in the email.

{_email_block(email_body, subject, author)}

Return exactly this JSON structure, with one entry per person listed above, in the same order:
{{
  "contacts": [
    {{
    {fields}
    }}
  ]
}}

{JSON_ONLY}"""


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def build_prompt(request: ExtractionRequest) -> str:
    """Build the prompt for *request* according to its task kind."""
    hints = request.hints
    mail_dt = format_datetime(request.sent_at)
    current_dt = request.current_date or current_datetime()
    body, subject, author = request.email_body, request.subject, request.author
    people = {"author": author, "recipients": request.recipients}

    kind = request.task_kind
    if kind is TaskKind.EVENT:
        return build_calendar_prompt(
            body, subject, mail_dt, current_dt,
            hints.attendees, hints.categories, hints.want_ai_description, **people,
        )
    if kind is TaskKind.TASK:
        return build_task_prompt(
            body, subject, mail_dt, current_dt, hints.categories, hints.want_ai_description,
            **people,
        )
    if kind is TaskKind.REPLY:
        return build_draft_reply_prompt(body, subject, author, mail_dt, current_dt)
    if kind is TaskKind.FORWARD_SUMMARY:
        return build_summarize_forward_prompt(body, subject, author, mail_dt, current_dt)
    if kind is TaskKind.CONTACT:
        return build_contact_prompt(body, subject, author, mail_dt, current_dt)
    if kind is TaskKind.ANALYSIS:
        return build_analysis_prompt(body, subject, author, mail_dt, current_dt)
    if kind is TaskKind.ARRAY_EVENT:
        return build_calendar_array_prompt(
            body, subject, mail_dt, current_dt,
            hints.attendees, hints.categories, hints.want_ai_description,
            hints.candidates, hints.selected, **people,
        )
    if kind is TaskKind.ARRAY_TASK:
        return build_task_array_prompt(
            body, subject, mail_dt, current_dt,
            hints.categories, hints.want_ai_description,
            hints.candidates, hints.selected, **people,
        )
    if kind is TaskKind.ARRAY_CONTACT:
        return build_contact_array_prompt(body, subject, author, hints.candidates, hints.selected)
    raise ValueError(f"Unsupported task kind: {kind}")
