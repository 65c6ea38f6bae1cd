"""End-to-end tests of the extraction pipeline against a scripted model."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from thunderclerk.errors import ActionCancelled, EmptyResult, NoJsonFound
from thunderclerk.extraction.models import CandidateItem, TaskKind
from thunderclerk.extraction.orchestrator import ExtractionRun, RunState
from thunderclerk.pipeline_config import ActionConfig

BODY = "Team meeting March 10, 2026 at 3pm."


def _event_json(**fields: object) -> str:
    return json.dumps({"summary": "Team meeting", **fields})


class TestExtractEvent:
    def test_timed_event(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator(
            _event_json(startDate="2026-03-10T15:00:00", endDate="2026-03-10T16:00:00", forceAllDay=False)
        )
        request = orchestrator.build_request(
            TaskKind.EVENT, BODY, subject="Sync", current_date="02/20/2026"
        )
        record = orchestrator.run(request)

        assert record["startDate"].startswith("20260310T150000")
        assert record["endDate"] == "20260310T160000"
        assert record["forceAllDay"] is False

    def test_all_day_event(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator(
            '```json\n{"summary": "Conference", "startDate": "2026-03-15", "forceAllDay": true}\n```'
        )
        request = orchestrator.build_request(
            TaskKind.EVENT, "Conference on March 15, 2026.", current_date="02/20/2026"
        )
        record = orchestrator.run(request)

        assert record["forceAllDay"] is True
        assert record["startDate"] == "20260315T000000"
        assert record["endDate"] == "20260315T000000"

    def test_past_year_is_advanced(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator(_event_json(startDate="2023-03-10T15:00:00"))
        record = orchestrator.run(orchestrator.build_request(TaskKind.EVENT, "Meeting March 10 at 3pm"))
        assert record["startDate"] == "20260310T150000"
        assert record["endDate"] == "20260310T160000"

    def test_attendee_hint_in_prompt(self, make_orchestrator) -> None:
        orchestrator, model = make_orchestrator(_event_json(startDate="2026-03-10T15:00:00"))
        orchestrator.run(
            orchestrator.build_request(
                TaskKind.EVENT, BODY, author="alice@example.com", recipients=["bob@example.com"]
            )
        )
        assert "alice@example.com, bob@example.com" in model.prompts[0]

    def test_run_trail(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator(_event_json(startDate="2026-03-10T15:00:00"))
        orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        assert orchestrator.runs[-1].trail == [
            RunState.IDLE,
            RunState.PROMPT_BUILT,
            RunState.MODEL_CALLED,
            RunState.RESPONSE_EXTRACTED,
            RunState.POST_PROCESSED,
            RunState.COMMITTED,
        ]


class TestCategories:
    def test_categories_offered_when_enabled(self, make_orchestrator) -> None:
        source = MagicMock()
        source.get_categories.return_value = ["Work", "Family"]
        orchestrator, model = make_orchestrator(
            _event_json(startDate="2026-03-10T15:00:00", category="Work"),
            config=ActionConfig(calendar_use_category=True),
            category_source=source,
        )
        record = orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        assert "Available categories: Work, Family" in model.prompts[0]
        assert record["category"] == "Work"

    def test_failing_source_means_no_categories(self, make_orchestrator) -> None:
        source = MagicMock()
        source.get_categories.side_effect = RuntimeError("unavailable")
        orchestrator, model = make_orchestrator(
            _event_json(startDate="2026-03-10T15:00:00"),
            config=ActionConfig(calendar_use_category=True),
            category_source=source,
        )
        orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        assert '"category"' not in model.prompts[0]

    def test_source_ignored_when_disabled(self, make_orchestrator) -> None:
        source = MagicMock()
        orchestrator, _ = make_orchestrator(
            _event_json(startDate="2026-03-10T15:00:00"), category_source=source
        )
        orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        source.get_categories.assert_not_called()


class TestTextActions:
    def test_reply(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator('Sure! {"body": "  Thanks, see you then.  "}')
        assert orchestrator.run(orchestrator.build_request(TaskKind.REPLY, BODY)) == (
            "Thanks, see you then."
        )

    def test_empty_reply(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator('{"body": ""}')
        with pytest.raises(EmptyResult, match="empty reply body"):
            orchestrator.run(orchestrator.build_request(TaskKind.REPLY, BODY))
        assert orchestrator.runs[-1].state is RunState.FAILED

    def test_forward_summary(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator('{"summary": "Meeting on March 10."}')
        request = orchestrator.build_request(TaskKind.FORWARD_SUMMARY, BODY)
        assert orchestrator.run(request) == "Meeting on March 10."


class TestFailures:
    def test_no_json(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator("I'm sorry, I can't find an event.")
        with pytest.raises(NoJsonFound):
            orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        run = orchestrator.runs[-1]
        assert run.state is RunState.FAILED
        assert run.error

    def test_cancelled_before_start(self, make_orchestrator) -> None:
        orchestrator, model = make_orchestrator(_event_json(startDate="2026-03-10T15:00:00"))
        orchestrator.cancel_event.set()
        with pytest.raises(ActionCancelled):
            orchestrator.run(orchestrator.build_request(TaskKind.EVENT, BODY))
        assert model.requests == []
        assert orchestrator.runs[-1].state is RunState.CANCELLED

    def test_finished_run_cannot_advance(self) -> None:
        run = ExtractionRun(kind=TaskKind.EVENT)
        run.fail(EmptyResult("x"))
        with pytest.raises(RuntimeError):
            run.advance(RunState.PROMPT_BUILT)


class TestAnalysisAndArrays:
    def test_analysis_keeps_email_years(self, make_orchestrator) -> None:
        payload = {
            "summary": "Conference schedule",
            "events": [{"preview": "Keynote - Mar 5, 2023, 9am"}, {"title": "Workshop - Mar 6, 2023"}],
            "tasks": ["Register by Feb 1, 2023", ""],
            "contacts": [],
        }
        orchestrator, model = make_orchestrator(json.dumps(payload))
        result = orchestrator.run(orchestrator.build_request(TaskKind.ANALYSIS, BODY))

        assert [c.preview for c in result.events] == [
            "Keynote - Mar 5, 2023, 9am",
            "Workshop - Mar 6, 2023",
        ]
        assert [c.preview for c in result.tasks] == ["Register by Feb 1, 2023"]
        assert result.contacts == []
        assert "keep every date exactly as written" in model.prompts[0]

    def test_analysis_options_sent(self, make_orchestrator) -> None:
        config = ActionConfig(analysis_options={"num_predict": 12288, "num_ctx": 16384})
        orchestrator, model = make_orchestrator('{"summary": "s"}', config=config)
        orchestrator.run(orchestrator.build_request(TaskKind.ANALYSIS, BODY))
        assert model.requests[0]["options"] == {"num_predict": 12288, "num_ctx": 16384}

    def test_single_item_calls_send_no_options(self, make_orchestrator) -> None:
        config = ActionConfig(analysis_options={"num_predict": 12288})
        orchestrator, model = make_orchestrator('{"body": "ok"}', config=config)
        orchestrator.run(orchestrator.build_request(TaskKind.REPLY, BODY))
        assert "options" not in model.requests[0]

    def test_array_events_keep_years(self, make_orchestrator) -> None:
        payload = {
            "events": [
                {"summary": "Keynote", "startDate": "2023-03-05T09:00:00", "forceAllDay": False},
                {"summary": "Workshop", "startDate": "2023-03-06", "forceAllDay": True},
            ]
        }
        orchestrator, _ = make_orchestrator(json.dumps(payload))
        request = orchestrator.build_request(
            TaskKind.ARRAY_EVENT,
            BODY,
            candidates=[CandidateItem("Keynote"), CandidateItem("Workshop")],
            selected=[0, 1],
        )
        records = orchestrator.run(request)

        assert [r["startDate"] for r in records] == ["20230305T090000", "20230306T000000"]
        assert records[0]["endDate"] == "20230305T100000"

    def test_truncated_array_is_salvaged(self, make_orchestrator) -> None:
        truncated = '{"tasks": [{"summary": "Send slides", "dueDate": "2026-03-01T12:00:00"}, {"summary": "Bo'
        orchestrator, _ = make_orchestrator(truncated)
        request = orchestrator.build_request(
            TaskKind.ARRAY_TASK, BODY, candidates=[CandidateItem("a"), CandidateItem("b")], selected=[0, 1]
        )
        records = orchestrator.run(request)
        assert records[0]["dueDate"] == "20260301T120000"
        assert records[1]["summary"] == "Bo"

    def test_unreadable_array_is_empty(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator("no items, sorry")
        request = orchestrator.build_request(
            TaskKind.ARRAY_CONTACT, BODY, candidates=[CandidateItem("a")], selected=[0]
        )
        assert orchestrator.run(request) == []

    def test_array_kind_required(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator()
        with pytest.raises(ValueError):
            orchestrator.extract_array(orchestrator.build_request(TaskKind.EVENT, BODY))
