"""Common utilities shared across the engine.

Includes:
- ``config``: Pydantic-based configuration from ``VS_*`` environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics for search, retrieval and fusion.
- ``tracing``: OpenTelemetry span helpers.

Import pattern:
- from vector_search.common.config import SearchEngineConfig
- from vector_search.common.logging import configure_logging
"""
