"""Per-request dependencies: a fresh settings snapshot and orchestrator."""

from __future__ import annotations

from thunderclerk.config import Settings, get_settings
from thunderclerk.extraction.orchestrator import ExtractionOrchestrator
from thunderclerk.pipeline_config import ActionConfig


class SettingsCategorySource:
    """Categories configured through the ``CATEGORIES`` setting."""

    def __init__(self, settings: Settings) -> None:
        self._categories = list(settings.categories)

    def get_categories(self) -> list[str]:
        return list(self._categories)


def get_orchestrator() -> ExtractionOrchestrator:
    """One orchestrator per request; nothing is shared between actions."""
    settings = get_settings()
    return ExtractionOrchestrator(
        ActionConfig.from_settings(settings),
        category_source=SettingsCategorySource(settings),
    )
