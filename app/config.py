from __future__ import annotations

import logging

from pydantic import ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "GTM Lead Desk"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Storage; unset keeps leads in process memory
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_auto_create_schema: bool = False

    # Research providers, each optional
    exa_api_key: str | None = None
    perplexity_api_key: str | None = None
    perplexity_model: str = "sonar"
    apollo_api_key: str | None = None
    provider_timeout_seconds: float = 20.0

    # Language model
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.2
    llm_system_prompt_path: str = "configs/prompts/system_prompt.md"
    classification_max_tokens: int = 150
    enrichment_max_tokens: int = 2000
    drafting_max_tokens: int = 1200

    # Enrichment research windows
    news_window_days: int = 90
    news_max_results: int = 3
    social_max_results: int = 5

    # Outreach
    email_from: str | None = None
    email_smtp_url: str | None = None
    email_disable_tls: bool = False
    follow_up_1_days: int = 14
    follow_up_2_days: int = 21

    # Security
    cors_origins: list[str] = []

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "gtm"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    model_config = ConfigDict(env_file=".env", case_sensitive=False)

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def _follow_ups_ordered(self) -> "Settings":
        if not 0 < self.follow_up_1_days < self.follow_up_2_days:
            raise ValueError("FOLLOW_UP_2_DAYS must be greater than FOLLOW_UP_1_DAYS, and both positive.")
        return self

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def email_configured(self) -> bool:
        return bool(self.email_smtp_url and self.email_from)


settings = Settings()
