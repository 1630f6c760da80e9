"""Multi-source vector search with rank fusion.

Subpackages:
- ``vector_search.common``: configuration, logging, metrics and tracing.
- ``vector_search.vector_store``: the query capability the engine depends on.
- ``vector_search.search``: candidates, retrievers and the search engine.
- ``vector_search.ranking``: RRF, RSF and DBSF fusion.

Usage:
- ``SearchEngine(client).add_retriever(...).add_retriever(...).set_reranker("rrf")``
- ``await engine.search("query text")``
"""

from vector_search.ranking.fusion import (
    DistributionBasedScoreFusion,
    ReciprocalRankFusion,
    RelativeScoreFusion,
    Reranker,
    RerankerType,
    create_reranker,
)
from vector_search.search.base import (
    Candidate,
    ConfigurationError,
    MissingKeyError,
    RetrievalError,
    SearchEngineError,
)
from vector_search.search.engine import SearchEngine
from vector_search.search.retriever import RetrieverConfig, VectorRetriever
from vector_search.vector_store.base import QueryClient, SparseVector

__all__ = [
    "Candidate",
    "ConfigurationError",
    "DistributionBasedScoreFusion",
    "MissingKeyError",
    "QueryClient",
    "ReciprocalRankFusion",
    "RelativeScoreFusion",
    "Reranker",
    "RerankerType",
    "RetrievalError",
    "RetrieverConfig",
    "SearchEngine",
    "SearchEngineError",
    "SparseVector",
    "VectorRetriever",
    "create_reranker",
]
__version__ = "0.1.0"
