"""Single-item extraction endpoints: event, task, reply, forward summary, contact."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from thunderclerk.api.deps import get_orchestrator
from thunderclerk.api.errors import to_http_exception, validate_record
from thunderclerk.api.models import (
    ContactRecord,
    ContactResponse,
    EmailPayload,
    EventRecord,
    ReplyResponse,
    SummaryResponse,
    TaskRecord,
)
from thunderclerk.errors import ThunderClerkError
from thunderclerk.extraction.models import TaskKind
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator
from thunderclerk.sinks import contact_properties

router = APIRouter(prefix="/api/extract")

Orchestrator = Annotated[ExtractionOrchestrator, Depends(get_orchestrator)]

def _run(orchestrator: ExtractionOrchestrator, kind: TaskKind, payload: EmailPayload) -> Any:
    request = orchestrator.build_request(
        kind,
        payload.email_body,
        subject=payload.subject,
        author=payload.author,
        recipients=payload.recipients,
        sent_at=payload.sent_at,
        current_date=payload.current_date,
    )
    try:
        return orchestrator.run(request)
    except ThunderClerkError as exc:
        raise to_http_exception(exc) from exc


@router.post("/event", response_model=EventRecord)
def extract_event(payload: EmailPayload, orchestrator: Orchestrator) -> EventRecord:
    """Extract one calendar event, ready for the New Event dialog."""
    record = _run(orchestrator, TaskKind.EVENT, payload)
    return validate_record(EventRecord, record)


@router.post("/task", response_model=TaskRecord)
def extract_task(payload: EmailPayload, orchestrator: Orchestrator) -> TaskRecord:
    """Extract one task, ready for the New Task dialog."""
    record = _run(orchestrator, TaskKind.TASK, payload)
    return validate_record(TaskRecord, record)


@router.post("/reply", response_model=ReplyResponse)
def draft_reply(payload: EmailPayload, orchestrator: Orchestrator) -> ReplyResponse:
    body = _run(orchestrator, TaskKind.REPLY, payload)
    return ReplyResponse(body=body, reply_mode=orchestrator.config.reply_mode.value)


@router.post("/forward-summary", response_model=SummaryResponse)
def summarize_forward(payload: EmailPayload, orchestrator: Orchestrator) -> SummaryResponse:
    summary = _run(orchestrator, TaskKind.FORWARD_SUMMARY, payload)
    return SummaryResponse(summary=summary)


@router.post("/contact", response_model=ContactResponse)
def extract_contact(payload: EmailPayload, orchestrator: Orchestrator) -> ContactResponse:
    """Extract the sender's contact card plus the address-book property mapping."""
    record = _run(orchestrator, TaskKind.CONTACT, payload)
    return ContactResponse(
        contact=validate_record(ContactRecord, record),
        properties=contact_properties(record),
        address_book=orchestrator.config.contact_address_book,
    )
