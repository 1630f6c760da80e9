"""Retrieval and orchestration.

Primary components:
- ``base``: ``Candidate`` and the engine's exception hierarchy.
- ``retriever``: ``RetrieverConfig`` and ``VectorRetriever``.
- ``engine``: ``SearchEngine``, the concurrent fan-out/fan-in orchestrator.
"""

from .base import (
    Candidate,
    ConfigurationError,
    MissingKeyError,
    RetrievalError,
    SearchEngineError,
)

__all__ = [
    "Candidate",
    "ConfigurationError",
    "MissingKeyError",
    "RetrievalError",
    "SearchEngineError",
]
