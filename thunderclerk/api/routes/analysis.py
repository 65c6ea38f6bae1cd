"""Two-stage analysis endpoints.

The service keeps no state between the stages: the client sends the stage-1
result back together with the user's selection. Abandoning the selection
simply means never calling stage 2.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from thunderclerk.api.deps import get_orchestrator
from thunderclerk.api.errors import to_http_exception, validate_record
from thunderclerk.api.models import (
    AnalysisResponse,
    ArrayExtractRequest,
    ArrayExtractResponse,
    Candidate,
    EmailPayload,
)
from thunderclerk.errors import ThunderClerkError
from thunderclerk.extraction.analysis import AnalysisSession
from thunderclerk.extraction.models import AnalysisResult, AnalysisSelection, CandidateItem
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator

router = APIRouter(prefix="/api/analyze")

Orchestrator = Annotated[ExtractionOrchestrator, Depends(get_orchestrator)]


def _candidates(items: list[Candidate]) -> list[CandidateItem]:
    return [
        CandidateItem(preview=c.preview, extra=dict(c.model_extra or {}))
        for c in items
    ]


@router.post("", response_model=AnalysisResponse)
def analyze(payload: EmailPayload, orchestrator: Orchestrator) -> AnalysisResponse:
    """Stage 1: summary and candidate previews. Email years are kept as written."""
    session = AnalysisSession(
        orchestrator,
        payload.email_body,
        subject=payload.subject,
        author=payload.author,
        recipients=payload.recipients,
        sent_at=payload.sent_at,
    )
    try:
        result = session.run_stage_one()
    except ThunderClerkError as exc:
        raise to_http_exception(exc) from exc
    return AnalysisResponse.model_validate(result.to_dict())


@router.post("/extract", response_model=ArrayExtractResponse)
def extract_selected(payload: ArrayExtractRequest, orchestrator: Orchestrator) -> ArrayExtractResponse:
    """Stage 2: full records for the selected candidates."""
    analysis = AnalysisResult(
        summary=payload.analysis.summary,
        events=_candidates(payload.analysis.events),
        tasks=_candidates(payload.analysis.tasks),
        contacts=_candidates(payload.analysis.contacts),
    )
    session = AnalysisSession.from_analysis(
        orchestrator,
        analysis,
        payload.email_body,
        subject=payload.subject,
        author=payload.author,
        recipients=payload.recipients,
        sent_at=payload.sent_at,
        current_date=payload.current_date,
    )
    sel = payload.selection
    try:
        outcome = session.select(
            AnalysisSelection(
                events=tuple(sel.events),
                tasks=tuple(sel.tasks),
                contacts=tuple(sel.contacts),
                force_calendar=sel.force_calendar,
                force_task=sel.force_task,
                force_contact=sel.force_contact,
            )
        )
    except ThunderClerkError as exc:
        raise to_http_exception(exc) from exc
    return validate_record(
        ArrayExtractResponse,
        {"events": outcome.events, "tasks": outcome.tasks, "contacts": outcome.contacts},
    )
