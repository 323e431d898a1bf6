"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Intake assistant configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/intake.db"))

    # Turso (hosted libSQL): overrides local database_path when set
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Model backend: "proxy" (OpenAI-compatible chat/completions) or "anthropic"
    llm_backend: str = Field(default="proxy")
    llm_timeout_seconds: float = Field(default=30.0)

    # LLM proxy
    llm_proxy_url: str = Field(default="")
    llm_proxy_api_key: str = Field(default="")
    llm_model: str = Field(default="")

    # Anthropic
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-haiku-4-5-20251001")

    # Intake replies
    intake_window_size: int = Field(default=6)
    intake_temperature: float = Field(default=0.2)
    intake_max_tokens: int = Field(default=220)

    # General chat replies
    chat_window_size: int = Field(default=8)
    chat_temperature: float = Field(default=0.7)
    chat_max_tokens: int = Field(default=800)

    # Memory
    memory_hint_limit: int = Field(default=5)
    filter_expired_memories: bool = Field(default=True)
    memory_extraction_enabled: bool = Field(default=True)

    # Safety keywords (YAML with "version" and "keywords"); empty → built-in list
    safety_lexicon_path: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_safety_lexicon_path(self) -> Path | None:
        """Return SAFETY_LEXICON_PATH as a Path, or None when unset."""
        if not self.safety_lexicon_path.strip():
            return None
        return Path(self.safety_lexicon_path.strip())


settings = Settings()
