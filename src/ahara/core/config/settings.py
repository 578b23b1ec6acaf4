"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Ahara diet-plan server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: the API has no auth layer, so exposing it to a
    # LAN/WAN has to be an explicit decision.
    ahara_host: str = "127.0.0.1"
    ahara_port: int = 5000
    ahara_log_level: str = "info"
    ahara_env: Literal["development", "production", "test"] = "development"
    ahara_allow_insecure_bind: bool = False

    # Diet-plan LLM
    llm_provider: Literal["openai", "anthropic", "mock"] = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    # Seconds the showcase fixture waits before answering
    fixture_delay_seconds: float = 3.0

    # Storage (patient records)
    db_path: str = "~/.ahara/patients.db"

    # Encryption of patient documents at rest (optional Fernet key)
    encryption_key: str = ""

    @property
    def is_production(self) -> bool:
        return self.ahara_env == "production"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
