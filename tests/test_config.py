"""Tests for Settings, option enums and the ActionConfig snapshot."""

from __future__ import annotations

import dataclasses

import pytest

from thunderclerk.config import Settings
from thunderclerk.pipeline_config import (
    ActionConfig,
    AttendeesSource,
    DescriptionFormat,
    ReplyMode,
    parse_default_due,
)


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestEnums:
    def test_values(self) -> None:
        assert AttendeesSource.FROM_TO.value == "from_to"
        assert DescriptionFormat.AI_SUMMARY.value == "ai_summary"
        assert ReplyMode.REPLY_TO_ALL.value == "replyToAll"

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            AttendeesSource("everyone")

    def test_is_str_subclass(self) -> None:
        assert isinstance(ReplyMode.REPLY_TO_SENDER, str)


class TestParseDefaultDue:
    @pytest.mark.parametrize(("raw", "expected"), [("none", None), ("0", None), ("7", 7), (3, 3)])
    def test_values(self, raw: object, expected: int | None) -> None:
        assert parse_default_due(raw) == expected


# ---------------------------------------------------------------------------
# ActionConfig
# ---------------------------------------------------------------------------


class TestActionConfig:
    def test_defaults(self) -> None:
        config = ActionConfig()
        assert config.ollama_host == "http://127.0.0.1:11434"
        assert config.ollama_model == "mistral:7b"
        assert config.attendees_source is AttendeesSource.FROM_TO
        assert config.task_default_due_days is None

    def test_frozen(self) -> None:
        config = ActionConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.ollama_model = "llama3"  # type: ignore[misc]

    def test_from_settings(self) -> None:
        config = ActionConfig.from_settings(
            _settings(
                ollama_model="llama3.1:8b",
                attendees_source="static",
                attendees_static="me@example.com",
                description_format="ai_summary",
                task_default_due="3",
                reply_mode="replyToAll",
                analysis_num_predict=4096,
            )
        )
        assert config.ollama_model == "llama3.1:8b"
        assert config.attendees_source is AttendeesSource.STATIC
        assert config.attendees_static == "me@example.com"
        assert config.description_format is DescriptionFormat.AI_SUMMARY
        assert config.task_default_due_days == 3
        assert config.reply_mode is ReplyMode.REPLY_TO_ALL
        assert config.analysis_options == {"num_predict": 4096, "num_ctx": 16384}

    def test_analysis_options_read_only(self) -> None:
        options = {"num_predict": 4096}
        config = ActionConfig(analysis_options=options)
        options["num_predict"] = 1
        assert config.analysis_options == {"num_predict": 4096}
        with pytest.raises(TypeError):
            config.analysis_options["num_ctx"] = 8192  # type: ignore[index]

    def test_unknown_values_fall_back(self) -> None:
        config = ActionConfig.from_settings(
            _settings(attendees_source="everyone", description_format="poem", reply_mode="shout")
        )
        assert config.attendees_source is AttendeesSource.FROM_TO
        assert config.description_format is DescriptionFormat.BODY_FROM_SUBJECT
        assert config.reply_mode is ReplyMode.REPLY_TO_SENDER

    def test_blank_host_falls_back(self) -> None:
        config = ActionConfig.from_settings(_settings(ollama_host="", ollama_model=""))
        assert config.ollama_host == "http://127.0.0.1:11434"
        assert config.ollama_model == "mistral:7b"

    def test_snapshot_is_independent_of_later_changes(self) -> None:
        settings = _settings(ollama_model="a")
        config = ActionConfig.from_settings(settings)
        settings.ollama_model = "b"
        assert config.ollama_model == "a"


class TestSettingsFromEnv:
    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OLLAMA_MODEL", "qwen2.5:7b")
        monkeypatch.setenv("CALENDAR_USE_CATEGORY", "true")
        settings = _settings()
        assert settings.ollama_model == "qwen2.5:7b"
        assert settings.calendar_use_category is True
