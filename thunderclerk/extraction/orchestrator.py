"""Extraction orchestrator: prompt -> model -> JSON recovery -> post-processing.

One :class:`ExtractionOrchestrator` serves one user action. It holds the
configuration snapshot taken when the action started and a cancellation
event; every step of the run is recorded on an :class:`ExtractionRun`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, TypeVar

from thunderclerk.errors import ActionCancelled, EmptyResult, ThunderClerkError
from thunderclerk.extraction.client import OllamaClient
from thunderclerk.extraction.dates import current_datetime, reference_year
from thunderclerk.extraction.json_extract import parse_array_payload, parse_model_json
from thunderclerk.extraction.models import (
    ARRAY_KEYS,
    AnalysisResult,
    CandidateItem,
    ExtractedRecord,
    ExtractionRequest,
    TaskHints,
    TaskKind,
)
from thunderclerk.extraction.postprocess import (
    build_attendees_hint,
    postprocess_contact,
    postprocess_event,
    postprocess_task,
)
from thunderclerk.extraction.prompts import build_prompt
from thunderclerk.pipeline_config import ActionConfig, DescriptionFormat
from thunderclerk.sinks import CategorySource, fetch_categories

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunState(StrEnum):
    """States of one pass through the pipeline."""

    IDLE = "idle"
    PROMPT_BUILT = "prompt_built"
    MODEL_CALLED = "model_called"
    RESPONSE_EXTRACTED = "response_extracted"
    POST_PROCESSED = "post_processed"
    AWAITING_SELECTION = "awaiting_selection"
    COMMITTED = "committed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({RunState.COMMITTED, RunState.FAILED, RunState.CANCELLED})


@dataclass
class ExtractionRun:
    """State trail of one pass; kept for logging and inspection only."""

    kind: TaskKind
    state: RunState = RunState.IDLE
    trail: list[RunState] = field(default_factory=lambda: [RunState.IDLE])
    error: str | None = None

    def advance(self, state: RunState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Run already finished in state {self.state}")
        self.state = state
        self.trail.append(state)
        logger.debug("%s run -> %s", self.kind, state)

    def fail(self, exc: BaseException) -> None:
        self.error = str(exc)
        terminal = RunState.CANCELLED if isinstance(exc, ActionCancelled) else RunState.FAILED
        if self.state not in TERMINAL_STATES:
            self.advance(terminal)


def _want_ai(fmt: DescriptionFormat) -> bool:
    return fmt is DescriptionFormat.AI_SUMMARY


class ExtractionOrchestrator:
    """Runs extraction actions for one user action.

    Args:
        config: Settings snapshot taken when the action started.
        client: Model client; built from *config* when omitted.
        category_source: Optional provider of category names.
        now: Clock override for the "current date" reference (tests).
        cancel: Cancellation event shared with the caller.
    """

    def __init__(
        self,
        config: ActionConfig,
        client: OllamaClient | None = None,
        category_source: CategorySource | None = None,
        now: Callable[[], datetime] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.client = client or OllamaClient(
            config.ollama_host, config.ollama_model, timeout=config.request_timeout
        )
        self.category_source = category_source
        self._now = now or datetime.now
        self.cancel_event = cancel or threading.Event()
        self.runs: list[ExtractionRun] = []

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------

    def build_request(
        self,
        task_kind: TaskKind,
        email_body: str,
        subject: str = "",
        author: str = "",
        recipients: Sequence[str] = (),
        sent_at: datetime | None = None,
        candidates: Sequence[CandidateItem] = (),
        selected: Sequence[int] = (),
        current_date: str | None = None,
    ) -> ExtractionRequest:
        """Assemble the request and its hints from the configuration snapshot."""
        cfg = self.config
        attendees: list[str] = []
        categories: list[str] = []
        want_ai = False

        if task_kind in (TaskKind.EVENT, TaskKind.ARRAY_EVENT):
            attendees = build_attendees_hint(
                author, recipients, cfg.attendees_source, cfg.attendees_static
            )
            if cfg.calendar_use_category:
                categories = fetch_categories(self.category_source)
            want_ai = _want_ai(cfg.description_format)
        elif task_kind in (TaskKind.TASK, TaskKind.ARRAY_TASK):
            if cfg.task_use_category:
                categories = fetch_categories(self.category_source)
            want_ai = _want_ai(cfg.task_description_format)

        return ExtractionRequest(
            email_body=email_body,
            subject=subject or "",
            author=author or "",
            recipients=tuple(recipients),
            sent_at=sent_at,
            task_kind=task_kind,
            hints=TaskHints(
                attendees=tuple(attendees),
                categories=tuple(categories),
                want_ai_description=want_ai,
                candidates=tuple(candidates),
                selected=tuple(selected),
            ),
            current_date=current_date or current_datetime(self._now()),
        )

    # ------------------------------------------------------------------
    # Pipeline core
    # ------------------------------------------------------------------

    def _timeout_for(self, kind: TaskKind) -> float:
        if kind is TaskKind.ANALYSIS:
            return self.config.analysis_timeout
        return self.config.request_timeout

    def _execute(
        self,
        request: ExtractionRequest,
        parse: Callable[[str], Any],
        postprocess: Callable[[Any], T],
    ) -> T:
        run = ExtractionRun(kind=request.task_kind)
        self.runs.append(run)
        try:
            if self.cancel_event.is_set():
                raise ActionCancelled("Action cancelled.")

            prompt = build_prompt(request)
            run.advance(RunState.PROMPT_BUILT)
            if self.config.debug_prompt_preview:
                logger.debug("Prompt for %s:\n%s", request.task_kind, prompt)

            options = self.config.analysis_options if request.task_kind is TaskKind.ANALYSIS else None
            raw = self.client.generate(
                prompt,
                timeout=self._timeout_for(request.task_kind),
                options=options or None,
                cancel=self.cancel_event,
            )
            run.advance(RunState.MODEL_CALLED)
            if self.config.debug_prompt_preview:
                logger.debug("Raw response for %s:\n%s", request.task_kind, raw)

            payload = parse(raw)
            run.advance(RunState.RESPONSE_EXTRACTED)

            result = postprocess(payload)
            run.advance(RunState.POST_PROCESSED)
        except ThunderClerkError as exc:
            run.fail(exc)
            logger.warning("%s extraction failed: %s", request.task_kind, exc)
            raise
        except Exception as exc:
            run.fail(exc)
            logger.exception("Unexpected error during %s extraction", request.task_kind)
            raise
        run.advance(RunState.COMMITTED)
        return result

    @staticmethod
    def _parse_object(raw: str) -> dict[str, Any]:
        value = parse_model_json(raw)
        if not isinstance(value, dict):
            raise EmptyResult("The model did not return a JSON object.")
        return value

    def _ref_year(self, request: ExtractionRequest) -> int | None:
        return reference_year(request.current_date or current_datetime(self._now()))

    # ------------------------------------------------------------------
    # Single-item actions
    # ------------------------------------------------------------------

    def extract_event(self, request: ExtractionRequest) -> ExtractedRecord:
        """Event record with canonical dates, corrected years and defaults applied."""
        return self._execute(
            request,
            self._parse_object,
            lambda data: postprocess_event(
                data,
                self.config,
                email_body=request.email_body,
                author=request.author,
                subject=request.subject,
                ref_year=self._ref_year(request),
            ),
        )

    def extract_task(self, request: ExtractionRequest) -> ExtractedRecord:
        """Task record with canonical dates, corrected years and the default due date."""
        return self._execute(
            request,
            self._parse_object,
            lambda data: postprocess_task(
                data,
                self.config,
                email_body=request.email_body,
                author=request.author,
                subject=request.subject,
                ref_year=self._ref_year(request),
                today=self._now().date(),
            ),
        )

    def draft_reply(self, request: ExtractionRequest) -> str:
        """Reply body text.

        Raises:
            EmptyResult: The model returned an empty ``body``.
        """
        return self._execute(request, self._parse_object, _required_text("body", "reply body"))

    def summarize_forward(self, request: ExtractionRequest) -> str:
        """Summary text for forwarding.

        Raises:
            EmptyResult: The model returned an empty ``summary``.
        """
        return self._execute(request, self._parse_object, _required_text("summary", "summary"))

    def extract_contact(self, request: ExtractionRequest) -> ExtractedRecord:
        return self._execute(request, self._parse_object, postprocess_contact)

    # ------------------------------------------------------------------
    # Two-stage actions
    # ------------------------------------------------------------------

    def analyze(self, request: ExtractionRequest) -> AnalysisResult:
        """Stage 1: overview and candidate previews.

        Dates are passed through untouched; the email's own years are kept.
        """
        return self._execute(request, self._parse_object, AnalysisResult.from_payload)

    def extract_array(self, request: ExtractionRequest) -> list[ExtractedRecord]:
        """Stage 2: full records for the selected candidates.

        A truncated or unreadable payload yields an empty list instead of an
        error. Years are not advanced.
        """
        key = ARRAY_KEYS.get(request.task_kind)
        if key is None:
            raise ValueError(f"{request.task_kind} is not an array task kind")

        if request.task_kind is TaskKind.ARRAY_EVENT:
            def process(data: dict[str, Any]) -> ExtractedRecord:
                return postprocess_event(
                    data,
                    self.config,
                    email_body=request.email_body,
                    author=request.author,
                    subject=request.subject,
                    ref_year=None,
                )
        elif request.task_kind is TaskKind.ARRAY_TASK:
            def process(data: dict[str, Any]) -> ExtractedRecord:
                return postprocess_task(
                    data,
                    self.config,
                    email_body=request.email_body,
                    author=request.author,
                    subject=request.subject,
                    ref_year=None,
                    today=self._now().date(),
                )
        else:
            process = postprocess_contact

        return self._execute(
            request,
            lambda raw: parse_array_payload(raw, key),
            lambda items: [process(item) for item in items],
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def run(self, request: ExtractionRequest) -> Any:
        """Run *request* through the handler for its task kind."""
        handlers: dict[TaskKind, Callable[[ExtractionRequest], Any]] = {
            TaskKind.EVENT: self.extract_event,
            TaskKind.TASK: self.extract_task,
            TaskKind.REPLY: self.draft_reply,
            TaskKind.FORWARD_SUMMARY: self.summarize_forward,
            TaskKind.CONTACT: self.extract_contact,
            TaskKind.ANALYSIS: self.analyze,
            TaskKind.ARRAY_EVENT: self.extract_array,
            TaskKind.ARRAY_TASK: self.extract_array,
            TaskKind.ARRAY_CONTACT: self.extract_array,
        }
        return handlers[request.task_kind](request)


def _required_text(key: str, label: str) -> Callable[[dict[str, Any]], str]:
    def pick(data: dict[str, Any]) -> str:
        value = data.get(key)
        text = value.strip() if isinstance(value, str) else ""
        if not text:
            raise EmptyResult(f"The AI returned an empty {label}.")
        return text

    return pick
