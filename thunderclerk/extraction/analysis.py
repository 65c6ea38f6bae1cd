"""Two-stage "detect, then extract" session for emails with several items.

Stage 1 asks for an overview and preview stubs. The session then waits, with
no timeout, for the user to pick which previews to commit. Stage 2 asks for
full records of exactly those. Cancelling at any point throws the stage-1
state away; a cancelled session cannot be resumed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from thunderclerk.errors import ActionCancelled
from thunderclerk.extraction.models import (
    AnalysisOutcome,
    AnalysisResult,
    AnalysisSelection,
    CandidateItem,
    TaskKind,
)
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator, RunState

logger = logging.getLogger(__name__)


class AnalysisSession:
    """One analysis action: stage 1, the user's pause, then stage 2."""

    def __init__(
        self,
        orchestrator: ExtractionOrchestrator,
        email_body: str,
        subject: str = "",
        author: str = "",
        recipients: Sequence[str] = (),
        sent_at: datetime | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._email_body = email_body
        self._subject = subject
        self._author = author
        self._recipients = tuple(recipients)
        self._sent_at = sent_at
        self._current_date: str | None = None
        self.state = RunState.IDLE
        self.analysis: AnalysisResult | None = None

    @classmethod
    def from_analysis(
        cls,
        orchestrator: ExtractionOrchestrator,
        analysis: AnalysisResult,
        email_body: str,
        subject: str = "",
        author: str = "",
        recipients: Sequence[str] = (),
        sent_at: datetime | None = None,
        current_date: str | None = None,
    ) -> AnalysisSession:
        """Session already awaiting a selection, for callers that held on to stage 1 themselves."""
        session = cls(orchestrator, email_body, subject, author, recipients, sent_at)
        session.analysis = analysis
        session._current_date = current_date
        session.state = RunState.AWAITING_SELECTION
        return session

    @property
    def cancelled(self) -> bool:
        return self.state is RunState.CANCELLED

    def _check_not_cancelled(self) -> None:
        if self.cancelled or self._orchestrator.cancel_event.is_set():
            self._discard()
            raise ActionCancelled("Analysis cancelled.")

    def _discard(self) -> None:
        self.analysis = None
        self.state = RunState.CANCELLED

    def run_stage_one(self) -> AnalysisResult:
        """Run the analysis pass and wait for a selection."""
        self._check_not_cancelled()
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Stage 1 already ran (state={self.state})")

        request = self._orchestrator.build_request(
            TaskKind.ANALYSIS,
            self._email_body,
            subject=self._subject,
            author=self._author,
            recipients=self._recipients,
            sent_at=self._sent_at,
        )
        # Stage 2 reuses the same reference date as stage 1.
        self._current_date = request.current_date
        try:
            self.analysis = self._orchestrator.analyze(request)
        except ActionCancelled:
            self._discard()
            raise
        except Exception:
            self.state = RunState.FAILED
            raise
        self.state = RunState.AWAITING_SELECTION
        logger.info(
            "Analysis found %d events, %d tasks, %d contacts",
            len(self.analysis.events),
            len(self.analysis.tasks),
            len(self.analysis.contacts),
        )
        return self.analysis

    def cancel(self) -> None:
        """Abandon the session and drop everything stage 1 produced."""
        self._orchestrator.cancel_event.set()
        self._discard()

    def select(self, selection: AnalysisSelection) -> AnalysisOutcome:
        """Run stage 2 for the chosen previews.

        Groups with no selected indices are skipped. A ``force_*`` flag runs a
        single-item extraction for a group in which nothing was detected.
        """
        self._check_not_cancelled()
        if self.state is not RunState.AWAITING_SELECTION or self.analysis is None:
            raise RuntimeError(f"No analysis awaiting selection (state={self.state})")

        analysis = self.analysis
        outcome = AnalysisOutcome()
        try:
            outcome.events = self._stage_two(
                TaskKind.ARRAY_EVENT, analysis.events, selection.events,
                TaskKind.EVENT, selection.force_calendar,
            )
            outcome.tasks = self._stage_two(
                TaskKind.ARRAY_TASK, analysis.tasks, selection.tasks,
                TaskKind.TASK, selection.force_task,
            )
            outcome.contacts = self._stage_two(
                TaskKind.ARRAY_CONTACT, analysis.contacts, selection.contacts,
                TaskKind.CONTACT, selection.force_contact,
            )
        except ActionCancelled:
            self._discard()
            raise
        except Exception:
            self.state = RunState.FAILED
            self.analysis = None
            raise

        self.state = RunState.COMMITTED
        # Stage-1 artifacts do not outlive the action.
        self.analysis = None
        return outcome

    def _stage_two(
        self,
        array_kind: TaskKind,
        candidates: list[CandidateItem],
        selected: Sequence[int],
        single_kind: TaskKind,
        force: bool,
    ) -> list[dict]:
        self._check_not_cancelled()
        orchestrator = self._orchestrator
        valid = [i for i in selected if 0 <= i < len(candidates)]
        if valid:
            request = orchestrator.build_request(
                array_kind,
                self._email_body,
                subject=self._subject,
                author=self._author,
                recipients=self._recipients,
                sent_at=self._sent_at,
                candidates=candidates,
                selected=valid,
                current_date=self._current_date,
            )
            return orchestrator.extract_array(request)

        if force and not candidates:
            request = orchestrator.build_request(
                single_kind,
                self._email_body,
                subject=self._subject,
                author=self._author,
                recipients=self._recipients,
                sent_at=self._sent_at,
                current_date=self._current_date,
            )
            return [orchestrator.run(request)]
        return []
