"""Run one ThunderClerk action against a saved .eml file and print the result."""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from thunderclerk.config import get_settings
from thunderclerk.errors import ModelCallError, ResponseFormatError, ThunderClerkError
from thunderclerk.extraction.analysis import AnalysisSession
from thunderclerk.extraction.models import AnalysisResult, AnalysisSelection, TaskKind
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator
from thunderclerk.mail import MailMessage, read_message_file
from thunderclerk.pipeline_config import ActionConfig
from thunderclerk.sinks import JsonLinesSink, deliver_outcome

SINGLE_KINDS = {
    "event": TaskKind.EVENT,
    "task": TaskKind.TASK,
    "reply": TaskKind.REPLY,
    "forward-summary": TaskKind.FORWARD_SUMMARY,
    "contact": TaskKind.CONTACT,
}


def _parse_indices(answer: str) -> tuple[int, ...]:
    """``"1,3"`` -> ``(0, 2)``; ``"all"`` is handled by the caller."""
    indices = []
    for token in answer.replace(" ", "").split(","):
        if token.isdigit() and int(token) > 0:
            indices.append(int(token) - 1)
    return tuple(indices)


def _ask(group: str, analysis: AnalysisResult) -> tuple[int, ...]:
    items = analysis.group(group)
    if not items:
        return ()
    print(f"\n{group.capitalize()}:")
    for i, item in enumerate(items, 1):
        print(f"  {i}. {item.preview}")
    answer = input(f"Select {group} (e.g. 1,3 / all / blank for none): ").strip().lower()
    if answer == "all":
        return tuple(range(len(items)))
    return _parse_indices(answer)


def run_analysis(
    orchestrator: ExtractionOrchestrator,
    message: MailMessage,
    sink: JsonLinesSink | None = None,
) -> dict:
    session = AnalysisSession(
        orchestrator,
        message.body,
        subject=message.subject,
        author=message.author,
        recipients=message.recipients,
        sent_at=message.sent_at,
    )
    analysis = session.run_stage_one()
    print(f"Summary: {analysis.summary or '(no summary)'}")

    try:
        selection = AnalysisSelection(
            events=_ask("events", analysis),
            tasks=_ask("tasks", analysis),
            contacts=_ask("contacts", analysis),
        )
    except (KeyboardInterrupt, EOFError):
        session.cancel()
        print("\nCancelled.")
        return {}

    outcome = session.select(selection)
    if sink is not None:
        count = deliver_outcome(outcome, sink, sink, orchestrator.config.contact_address_book)
        print(f"Delivered {count} record(s).", file=sys.stderr)
    return {"events": outcome.events, "tasks": outcome.tasks, "contacts": outcome.contacts}


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("eml", help="Path to an RFC 822 message (.eml)")
    parser.add_argument(
        "--action",
        choices=sorted([*SINGLE_KINDS, "analyze"]),
        default="event",
        help="What to extract (default: event)",
    )
    parser.add_argument(
        "--deliver",
        action="store_true",
        help="With --action analyze, hand each committed record to a JSON-lines sink on stdout",
    )
    parser.add_argument("--verbose", action="store_true", help="Log prompts and raw responses")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    message = read_message_file(args.eml)
    if not message.body:
        print("Could not extract plain text from this message.", file=sys.stderr)
        return 1

    settings = get_settings()
    config = ActionConfig.from_settings(settings)
    if args.verbose:
        config = dataclasses.replace(config, debug_prompt_preview=True)
    orchestrator = ExtractionOrchestrator(config)

    try:
        if args.action == "analyze":
            sink = JsonLinesSink(sys.stdout) if args.deliver else None
            result = run_analysis(orchestrator, message, sink)
            if sink is not None:
                return 0
        else:
            request = orchestrator.build_request(
                SINGLE_KINDS[args.action],
                message.body,
                subject=message.subject,
                author=message.author,
                recipients=message.recipients,
                sent_at=message.sent_at,
            )
            result = orchestrator.run(request)
    except ResponseFormatError as exc:
        print(f"Parse error: model returned invalid JSON ({exc})", file=sys.stderr)
        return 2
    except ModelCallError as exc:
        print(f"Model error: {exc}. Check your model/host settings.", file=sys.stderr)
        return 3
    except ThunderClerkError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 4

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
