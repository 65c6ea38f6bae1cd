from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file. They
    mirror the user-facing options of the mail client add-on; a snapshot is
    taken once per action (see ``ActionConfig.from_settings``).
    """

    # Model endpoint
    ollama_host: str = "http://127.0.0.1:11434"
    ollama_model: str = "mistral:7b"
    request_timeout_seconds: float = 60.0
    analysis_timeout_seconds: float = 300.0
    analysis_num_predict: int = 12288
    analysis_num_ctx: int = 16384

    # Calendar events
    attendees_source: str = "from_to"
    attendees_static: str = ""
    default_calendar: str = ""
    description_format: str = "body_from_subject"
    calendar_use_category: bool = False

    # Tasks
    task_description_format: str = "body_from_subject"
    task_default_due: str = "none"
    task_use_category: bool = False

    # Compose / contacts
    reply_mode: str = "replyToSender"
    contact_address_book: str = ""

    # Categories offered to the model when category selection is enabled
    categories: list[str] = []

    # Debug
    debug_prompt_preview: bool = False

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]
