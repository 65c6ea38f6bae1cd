"""Pydantic request/response schemas for the ThunderClerk API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class EmailPayload(BaseModel):
    """The selected message, as the mail client hands it over."""

    email_body: str = Field(min_length=1)
    subject: str = ""
    author: str = ""
    recipients: list[str] = []
    sent_at: datetime | None = None
    current_date: str | None = None


class EventRecord(BaseModel):
    summary: str
    startDate: str | None = None
    endDate: str | None = None
    forceAllDay: bool = False
    attendees: list[str] = []
    description: str | None = None
    category: str | None = None
    calendar_name: str | None = None


class TaskRecord(BaseModel):
    summary: str
    dueDate: str | None = None
    initialDate: str | None = None
    forceAllDay: bool = False
    description: str | None = None
    category: str | None = None


class ContactRecord(BaseModel):
    firstName: str = ""
    lastName: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    jobTitle: str = ""
    website: str = ""


class ContactResponse(BaseModel):
    contact: ContactRecord
    properties: dict[str, str]
    address_book: str = ""


class ReplyResponse(BaseModel):
    body: str
    reply_mode: str


class SummaryResponse(BaseModel):
    summary: str


class Candidate(BaseModel):
    """A stage-1 preview. Extra keys the model volunteered are kept."""

    model_config = {"extra": "allow"}

    preview: str


class AnalysisResponse(BaseModel):
    summary: str
    events: list[Candidate] = []
    tasks: list[Candidate] = []
    contacts: list[Candidate] = []


class Selection(BaseModel):
    events: list[int] = []
    tasks: list[int] = []
    contacts: list[int] = []
    force_calendar: bool = False
    force_task: bool = False
    force_contact: bool = False


class ArrayExtractRequest(EmailPayload):
    """Stage 2 input: the email again, the stage-1 candidates and the user's selection."""

    analysis: AnalysisResponse
    selection: Selection


class ArrayExtractResponse(BaseModel):
    events: list[EventRecord] = []
    tasks: list[TaskRecord] = []
    contacts: list[ContactRecord] = []
