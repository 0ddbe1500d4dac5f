"""Triage service configuration using pydantic-settings.

This module defines the TriageSettings class that reads configuration
from environment variables with the TRIAGE_ prefix. Required fields must be
set via environment variables for the service to start.
"""

from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TriageSettings(BaseSettings):
    """Issue triage configuration from environment variables.

    All environment variables are prefixed with TRIAGE_ (e.g., TRIAGE_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token for labels, state changes and transfers
    - llm_url: URL of the OpenAI-compatible classifier endpoint
    - github_webhook_secret: required unless dev_mode is enabled
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Secret for validating GitHub webhook signatures
    github_webhook_secret: str = ""

    # GitHub API token for labels, issue updates and transfers
    github_token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    github_timeout_seconds: float = 30.0

    # Transport-level retries inside the tracker client; 0 keeps every
    # failure visible to the triage pass
    github_max_retries: int = 0

    # Node id of the repository spam issues are transferred to
    spam_repository_node_id: str = ""

    # -------------------------------------------------------------------------
    # LLM Configuration
    # -------------------------------------------------------------------------
    llm_url: str

    llm_model: str = "NousResearch/Hermes-2-Pro-Mistral-7B"

    llm_api_key: str = "not-needed"

    llm_timeout_seconds: float = 30.0

    # Falls back to llm_model when empty
    translation_model: str = ""

    # Project name used in classifier schema hints
    project_name: str = "Nuxt"

    # -------------------------------------------------------------------------
    # Context Gathering
    # -------------------------------------------------------------------------
    max_comments: int = 5

    timeline_limit: int = 20

    # -------------------------------------------------------------------------
    # Runtime Modes
    # -------------------------------------------------------------------------
    # Accept unsigned webhook deliveries (local development only)
    dev_mode: bool = False

    # Log tracker mutations instead of sending them
    dry_run: bool = False

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("github_base_url", "llm_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that endpoint URLs have an http(s) scheme."""
        if not v or not v.strip():
            raise ValueError("URL cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("spam_repository_node_id")
    @classmethod
    def strip_spam_repository(cls, v: str) -> str:
        return v.strip()

    @field_validator("max_comments", "timeline_limit")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Validate that fetch limits fit in a single GitHub page."""
        if not 1 <= v <= 100:
            raise ValueError("fetch limits must be between 1 and 100")
        return v

    @field_validator("github_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("github_max_retries cannot be negative")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_webhook_secret(self) -> "TriageSettings":
        """Require a webhook secret outside of local development."""
        if not self.dev_mode and not self.github_webhook_secret.strip():
            raise ValueError(
                "github_webhook_secret cannot be empty unless dev_mode is enabled"
            )
        return self

    @property
    def effective_translation_model(self) -> str:
        return self.translation_model or self.llm_model

    @property
    def spam_transfer_enabled(self) -> bool:
        return bool(self.spam_repository_node_id)


def get_settings(**overrides: Optional[object]) -> TriageSettings:
    """Create and return a TriageSettings instance.

    Reads configuration from environment variables. Keyword overrides take
    precedence over the environment, which keeps tests free of env mutation.

    Returns:
        TriageSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return TriageSettings(**overrides)
