"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = Field("AI Provider Gateway", description="Human-readable service name.")
    environment: str = Field("dev", description="Deployment environment tag.")
    debug: bool = Field(False, description="Enable FastAPI debug mode.")
    log_level: str = Field("INFO", description="Root log level for the service.")

    api_v1_prefix: str = Field("/api", description="Root prefix for API routes.")
    frontend_origin: Optional[HttpUrl] = Field(
        None, description="Optional frontend origin allowed for CORS policies."
    )
    allowed_hosts: List[str] = Field(
        default_factory=lambda: ["*"], description="Hosts allowed to access the service."
    )

    database_url: str = Field(
        "sqlite:///./gateway.db",
        description="SQLAlchemy database URL used by the persistent usage ledger.",
    )
    usage_backend: Literal["memory", "database"] = Field(
        "memory", description="Where usage counters live: process memory or the database."
    )

    openrouter_api_key: Optional[str] = Field(None, description="OpenRouter API key.")
    openrouter_base_url: str = Field("https://openrouter.ai/api/v1")
    openrouter_model: str = Field("anthropic/claude-3-sonnet")

    gemini_api_key: Optional[str] = Field(None, description="Google Gemini API key.")
    gemini_base_url: str = Field("https://generativelanguage.googleapis.com")
    gemini_model: str = Field("gemini-1.5-pro")

    zai_api_key: Optional[str] = Field(None, description="Z.AI API key.")
    zai_base_url: str = Field("https://api.z.ai/v1")
    zai_model: str = Field("zai-gpt-4")

    provider_priority: List[str] = Field(
        default_factory=lambda: ["openrouter", "gemini", "zai"],
        description="Order in which providers are attempted.",
    )
    provider_timeout_seconds: float = Field(
        30.0, description="Timeout for a single upstream provider call."
    )
    request_timeout_seconds: float = Field(
        10.0, description="Overall budget for one /ask request before answering 408."
    )
    max_retries: int = Field(3, description="Retries per provider on rate limiting.")
    backoff_base_seconds: float = Field(1.0, description="First backoff delay.")
    backoff_max_seconds: float = Field(30.0, description="Cap for a single backoff delay.")
    default_retry_after_seconds: float = Field(
        60.0, description="Retry hint used when a provider does not send one."
    )

    relevance_threshold: float = Field(
        0.5, description="Answers scoring below this relevance are rejected."
    )
    max_history_messages: int = Field(
        20, description="Most recent conversation turns forwarded to providers."
    )
    max_output_tokens: int = Field(2000)
    temperature: float = Field(0.7)

    daily_request_limit: Optional[int] = Field(
        None, description="Per-user requests per UTC day; unset disables the check."
    )
    daily_token_limit: Optional[int] = Field(None, description="Per-user tokens per UTC day.")
    daily_cost_limit: Optional[float] = Field(None, description="Per-user USD per UTC day.")

    api_tokens: Dict[str, str] = Field(
        default_factory=dict,
        description="Bearer token to user id mapping; empty accepts any token.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Provide a cached Settings instance."""

    return Settings()
