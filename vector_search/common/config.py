"""Configuration management for the search engine.

Centralizes environment-driven defaults for retrievers, rerankers and the
ambient stack (logging, metrics, tracing). It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover the ``VS_*`` environment variables
- Values only seed defaults; explicit arguments to the engine always win

Usage
- ``config = get_config()``
- ``engine = SearchEngine.from_config(client, config)``
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchEngineConfig(BaseSettings):
    """Configuration for the search engine.

    Parameters are read from the process environment with the given names.
    Defaults match the engine's built-in keyword defaults so an empty
    environment behaves exactly like a bare ``SearchEngine``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    vs_log_level: str = Field(default="INFO")
    vs_log_format: str = Field(default="json")

    # Retriever defaults
    vs_default_primary_key: str = Field(default="ID")
    vs_default_limit: int = Field(default=2, ge=1)

    # Reranker defaults
    vs_rrf_k: float = Field(default=50.0, ge=0)

    # Observability
    vs_metrics_enabled: bool = Field(default=True)
    vs_tracing_enabled: bool = Field(default=True)

    @field_validator("vs_log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("vs_log_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in {"json", "console"}:
            raise ValueError(f"Unknown log format: {value}")
        return fmt


def get_config() -> SearchEngineConfig:
    """Build a fresh configuration from the current environment."""
    return SearchEngineConfig()

