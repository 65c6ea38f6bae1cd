"""Data models for extraction requests and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# An extracted record is a plain mapping whose shape depends on the task kind.
ExtractedRecord = dict[str, Any]


class TaskKind(StrEnum):
    """What a single action asks the model for."""

    EVENT = "event"
    TASK = "task"
    REPLY = "reply"
    FORWARD_SUMMARY = "forward-summary"
    CONTACT = "contact"
    ANALYSIS = "analysis"
    ARRAY_EVENT = "array-event"
    ARRAY_TASK = "array-task"
    ARRAY_CONTACT = "array-contact"


# Array kinds and the JSON key their items are returned under.
ARRAY_KEYS: dict[TaskKind, str] = {
    TaskKind.ARRAY_EVENT: "events",
    TaskKind.ARRAY_TASK: "tasks",
    TaskKind.ARRAY_CONTACT: "contacts",
}

# Keys a model has been seen to use for the preview text of a candidate.
PREVIEW_ALIASES: tuple[str, ...] = ("preview", "title", "name", "description", "summary", "label")

# Canonical contact field -> accepted aliases, first match wins.
CONTACT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "firstName": ("firstName", "first_name", "firstname", "givenName", "given_name"),
    "lastName": ("lastName", "last_name", "lastname", "surname", "familyName", "family_name"),
    "email": ("email", "emailAddress", "email_address", "primaryEmail", "mail"),
    "phone": ("phone", "phoneNumber", "phone_number", "telephone", "mobile", "cell"),
    "company": ("company", "organization", "organisation", "org", "employer"),
    "jobTitle": ("jobTitle", "job_title", "title", "position", "role"),
    "website": ("website", "url", "web", "homepage", "webPage"),
}


@dataclass
class CandidateItem:
    """A lightweight item detected by the analysis stage.

    Only ``preview`` is authoritative; whatever else the model volunteered is
    kept in ``extra`` and passed back to the model in stage 2.
    """

    preview: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> CandidateItem | None:
        """Coalesce the shapes a model uses for a candidate into one item.

        Accepts a bare string or an object carrying its text under any of
        :data:`PREVIEW_ALIASES`. Returns None when no preview text exists.
        """
        if isinstance(raw, str):
            text = raw.strip()
            return cls(preview=text) if text else None
        if not isinstance(raw, dict):
            return None

        preview = ""
        for alias in PREVIEW_ALIASES:
            value = raw.get(alias)
            if isinstance(value, str) and value.strip():
                preview = value.strip()
                break
        if not preview:
            return None
        extra = {k: v for k, v in raw.items() if k != "preview"}
        return cls(preview=preview, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, "preview": self.preview}


def coalesce_candidates(raw_items: Any) -> list[CandidateItem]:
    """Normalize a raw candidate array, dropping entries with no preview."""
    if not isinstance(raw_items, list):
        return []
    items = (CandidateItem.from_raw(raw) for raw in raw_items)
    return [item for item in items if item is not None]


def normalize_contact_fields(data: dict[str, Any]) -> ExtractedRecord:
    """Map model-chosen contact field names onto the canonical ones.

    Missing fields become empty strings; unrecognized fields are dropped.
    """
    record: ExtractedRecord = {}
    for canonical, aliases in CONTACT_FIELD_ALIASES.items():
        value: Any = ""
        for alias in aliases:
            candidate = data.get(alias)
            if candidate not in (None, ""):
                value = candidate
                break
        record[canonical] = str(value).strip() if value is not None else ""

    # A single "name"/"fullName" field is split when first/last are missing.
    if not record["firstName"] and not record["lastName"]:
        full = data.get("fullName") or data.get("full_name") or data.get("name")
        if isinstance(full, str) and full.strip():
            first, _, last = full.strip().partition(" ")
            record["firstName"] = first
            record["lastName"] = last.strip()
    return record


@dataclass(frozen=True)
class TaskHints:
    """Optional, task-kind-specific context for the prompt."""

    attendees: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    want_ai_description: bool = False
    candidates: tuple[CandidateItem, ...] = ()
    selected: tuple[int, ...] = ()


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything one action needs from the selected message.

    Constructed fresh per user action and never mutated.
    """

    email_body: str
    subject: str = ""
    author: str = ""
    recipients: tuple[str, ...] = ()
    sent_at: datetime | None = None
    task_kind: TaskKind = TaskKind.EVENT
    hints: TaskHints = field(default_factory=TaskHints)
    current_date: str | None = None
    """Reference "current date" string; None means the clock at build time."""


@dataclass
class AnalysisResult:
    """Stage-1 overview of one email."""

    summary: str
    events: list[CandidateItem] = field(default_factory=list)
    tasks: list[CandidateItem] = field(default_factory=list)
    contacts: list[CandidateItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AnalysisResult:
        summary = payload.get("summary")
        return cls(
            summary=summary.strip() if isinstance(summary, str) else "",
            events=coalesce_candidates(payload.get("events")),
            tasks=coalesce_candidates(payload.get("tasks")),
            contacts=coalesce_candidates(payload.get("contacts")),
        )

    def group(self, name: str) -> list[CandidateItem]:
        return {"events": self.events, "tasks": self.tasks, "contacts": self.contacts}[name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "events": [c.to_dict() for c in self.events],
            "tasks": [c.to_dict() for c in self.tasks],
            "contacts": [c.to_dict() for c in self.contacts],
        }


@dataclass(frozen=True)
class AnalysisSelection:
    """The user's choice after reviewing a stage-1 analysis.

    ``force_*`` request a single-item extraction for a group in which the
    analysis detected nothing.
    """

    events: tuple[int, ...] = ()
    tasks: tuple[int, ...] = ()
    contacts: tuple[int, ...] = ()
    force_calendar: bool = False
    force_task: bool = False
    force_contact: bool = False


@dataclass
class AnalysisOutcome:
    """Committed records produced by stage 2."""

    events: list[ExtractedRecord] = field(default_factory=list)
    tasks: list[ExtractedRecord] = field(default_factory=list)
    contacts: list[ExtractedRecord] = field(default_factory=list)
