"""Application configuration using Pydantic Settings.

Configuration is loaded from environment variables. Optionally point
`ENV_FILE` at a local env file for development.
"""

import os
from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Promotion rule builder settings with type validation.

    Every field can be overridden by the upper-cased environment variable of
    the same name (e.g. `API_BASE_URL`, `ENFORCE_VALIDITY_WINDOW`).
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "promotion-rule-builder"
    app_log_level: str = "INFO"

    # Observability
    observability_structured_logs: bool = True
    observability_request_id_header: str = "X-Request-ID"

    # Promotion rules API (external)
    api_base_url: str = "http://127.0.0.1:8000/api"
    api_timeout_seconds: float = 10.0
    api_token: str | None = None
    # Connection-level retries only; rejected submissions are never retried
    api_max_retries: int = 0

    # Rule graph / compiler
    default_salience: int = 10
    max_graph_nodes: int = 500
    # valid_from <= valid_until is left to the evaluation engine unless enabled
    enforce_validity_window: bool = False

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("app_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level name."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"app_log_level must be a standard logging level, got '{v}'")
        return level

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must use http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("default_salience", "max_graph_nodes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("api_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("api_max_retries cannot be negative")
        return v


settings = Settings()
