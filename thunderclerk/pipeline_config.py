"""Per-action configuration: option enums and the immutable ActionConfig snapshot."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from thunderclerk.config import Settings


class AttendeesSource(StrEnum):
    """Where the attendee list of an extracted event comes from."""

    FROM_TO = "from_to"
    FROM = "from"
    TO = "to"
    STATIC = "static"
    NONE = "none"


class DescriptionFormat(StrEnum):
    """How the description of an event or task is assembled."""

    BODY_FROM_SUBJECT = "body_from_subject"
    BODY = "body"
    NONE = "none"
    AI_SUMMARY = "ai_summary"


class ReplyMode(StrEnum):
    """Compose mode used for drafted replies."""

    REPLY_TO_SENDER = "replyToSender"
    REPLY_TO_ALL = "replyToAll"


E = TypeVar("E", bound=StrEnum)


def _coerce(enum_cls: type[E], value: object, default: E) -> E:
    """Unknown option values fall back to the default instead of failing the action."""
    try:
        return enum_cls(str(value))
    except ValueError:
        return default


def parse_default_due(value: object) -> int | None:
    """``"none"`` (or anything non-numeric) means no default due date."""
    try:
        days = int(str(value))
    except ValueError:
        return None
    return days if days > 0 else None


@dataclass(frozen=True)
class ActionConfig:
    """Immutable configuration snapshot read once at the start of an action.

    Changing settings while an action is running does not affect it.
    """

    ollama_host: str = "http://127.0.0.1:11434"
    ollama_model: str = "mistral:7b"
    request_timeout: float = 60.0
    analysis_timeout: float = 300.0
    analysis_options: Mapping[str, int] = field(default_factory=dict)
    attendees_source: AttendeesSource = AttendeesSource.FROM_TO
    attendees_static: str = ""
    default_calendar: str = ""
    description_format: DescriptionFormat = DescriptionFormat.BODY_FROM_SUBJECT
    task_description_format: DescriptionFormat = DescriptionFormat.BODY_FROM_SUBJECT
    task_default_due_days: int | None = None
    calendar_use_category: bool = False
    task_use_category: bool = False
    reply_mode: ReplyMode = ReplyMode.REPLY_TO_SENDER
    contact_address_book: str = ""
    debug_prompt_preview: bool = False

    def __post_init__(self) -> None:
        # Read-only copy; the caller's dict cannot reach a running action.
        object.__setattr__(self, "analysis_options", MappingProxyType(dict(self.analysis_options)))

    @classmethod
    def from_settings(cls, settings: Settings) -> ActionConfig:
        return cls(
            ollama_host=settings.ollama_host or cls.ollama_host,
            ollama_model=settings.ollama_model or cls.ollama_model,
            request_timeout=settings.request_timeout_seconds,
            analysis_timeout=settings.analysis_timeout_seconds,
            analysis_options={
                "num_predict": settings.analysis_num_predict,
                "num_ctx": settings.analysis_num_ctx,
            },
            attendees_source=_coerce(
                AttendeesSource, settings.attendees_source, AttendeesSource.FROM_TO
            ),
            attendees_static=settings.attendees_static,
            default_calendar=settings.default_calendar,
            description_format=_coerce(
                DescriptionFormat, settings.description_format, DescriptionFormat.BODY_FROM_SUBJECT
            ),
            task_description_format=_coerce(
                DescriptionFormat,
                settings.task_description_format,
                DescriptionFormat.BODY_FROM_SUBJECT,
            ),
            task_default_due_days=parse_default_due(settings.task_default_due),
            calendar_use_category=settings.calendar_use_category,
            task_use_category=settings.task_use_category,
            reply_mode=_coerce(
                ReplyMode, settings.reply_mode, ReplyMode.REPLY_TO_SENDER
            ),
            contact_address_book=settings.contact_address_book,
            debug_prompt_preview=settings.debug_prompt_preview,
        )
