"""Shared fixtures: an orchestrator wired to a scripted model."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime

import httpx
import pytest

from thunderclerk.extraction.client import OllamaClient
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator
from thunderclerk.pipeline_config import ActionConfig
from thunderclerk.sinks import CategorySource

NOW = datetime(2026, 2, 20, 10, 0, 0)


class ScriptedModel:
    """Answers each generate call with the next scripted response text.

    A scripted exception is raised from the transport instead.
    """

    def __init__(self, responses: list[str | Exception]) -> None:
        self.responses = list(responses)
        self.requests: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.responses:
            return httpx.Response(500, text="no scripted response left")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return httpx.Response(200, json={"response": reply})

    @property
    def prompts(self) -> list[str]:
        return [r["prompt"] for r in self.requests]


@pytest.fixture
def make_orchestrator() -> Callable[..., tuple[ExtractionOrchestrator, ScriptedModel]]:
    def factory(
        *responses: str | Exception,
        config: ActionConfig | None = None,
        category_source: CategorySource | None = None,
    ) -> tuple[ExtractionOrchestrator, ScriptedModel]:
        config = config or ActionConfig()
        model = ScriptedModel(list(responses))
        client = OllamaClient(
            config.ollama_host,
            config.ollama_model,
            transport=httpx.MockTransport(model.handler),
        )
        orchestrator = ExtractionOrchestrator(
            config, client=client, category_source=category_source, now=lambda: NOW
        )
        return orchestrator, model

    return factory
