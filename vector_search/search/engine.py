"""Search engine for multi-source retrieval and rank fusion.

Dispatches one query to every registered retriever concurrently and, when
more than one ranked list comes back, merges them with the configured
reranker (RRF, RSF or DBSF). Configuration is fluent::

    engine = (
        SearchEngine(client)
        .add_retriever("Docs", query_index="DenseIndex", limit=10)
        .add_retriever("Docs", query_index="SparseIndex", limit=10)
        .set_reranker("rrf", k=60)
    )
    candidates = await engine.search("what is a vector database?")

Do not reconfigure an engine while one of its searches is in flight.
"""

import asyncio
import time
from typing import Any, List, Optional, Sequence, Tuple, Union

import structlog

from ..common.config import SearchEngineConfig
from ..common.metrics import SearchMetrics, get_search_metrics
from ..common.tracing import trace_span
from ..ranking.fusion import DEFAULT_RRF_K, Reranker, RerankerType, create_reranker
from ..vector_store.base import QueryVector
from .base import Candidate, ConfigurationError
from .retriever import Query, RetrieverConfig, VectorRetriever

logger = structlog.get_logger("vector_search.engine")


class SearchEngine:
    """Owns retrievers and an optional reranker.

    Parameters
    - client: Query-capable database client shared by all retrievers
    - metrics: Optional ``SearchMetrics``; ``None`` disables metrics
    - tracing_enabled: Emit OpenTelemetry spans around search stages
    """

    def __init__(
        self,
        client: Any,
        metrics: Optional[SearchMetrics] = None,
        tracing_enabled: bool = True,
    ):
        self.client = client
        self.metrics = metrics
        self.tracing_enabled = tracing_enabled
        self._retrievers: List[VectorRetriever] = []
        self._reranker: Optional[Reranker] = None

        self._default_primary_key = "ID"
        self._default_limit = 2
        self._default_k = DEFAULT_RRF_K

    @classmethod
    def from_config(cls, client: Any, config: Optional[SearchEngineConfig] = None) -> "SearchEngine":
        """Build an engine whose defaults come from ``SearchEngineConfig``."""
        config = config or SearchEngineConfig()
        engine = cls(
            client,
            metrics=get_search_metrics() if config.vs_metrics_enabled else None,
            tracing_enabled=config.vs_tracing_enabled,
        )
        engine._default_primary_key = config.vs_default_primary_key
        engine._default_limit = config.vs_default_limit
        engine._default_k = config.vs_rrf_k
        return engine

    @property
    def retrievers(self) -> Tuple[VectorRetriever, ...]:
        return tuple(self._retrievers)

    @property
    def reranker(self) -> Optional[Reranker]:
        return self._reranker

    def __len__(self) -> int:
        return len(self._retrievers)

    def add_retriever(
        self,
        table: str,
        primary_key_field: Optional[str] = None,
        query_index: Optional[str] = None,
        query_field: Optional[str] = None,
        query_vector: Optional[QueryVector] = None,
        response: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        filter: str = "",
    ) -> "SearchEngine":
        """Register a retriever and clear the reranker.

        The reranker is cleared because its parameters (weights, scale ranges)
        are tied to the retriever count; call ``set_reranker`` again after the
        last ``add_retriever``.
        """
        try:
            config = RetrieverConfig(
                table=table,
                primary_key_field=primary_key_field or self._default_primary_key,
                query_index=query_index,
                query_field=query_field,
                query_vector=query_vector,
                response=list(response) if response is not None else None,
                limit=limit if limit is not None else self._default_limit,
                filter=filter or "",
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid retriever configuration: {e}") from e

        if self._reranker is not None:
            logger.info(
                "Reranker cleared by new retriever",
                algorithm=self._reranker.algorithm,
                table=table,
            )
        self._reranker = None
        self._retrievers.append(
            VectorRetriever(
                self.client,
                config,
                metrics=self.metrics,
                tracing_enabled=self.tracing_enabled,
            )
        )
        return self

    def set_reranker(
        self,
        kind: Union[str, RerankerType],
        weights: Optional[Sequence[float]] = None,
        scale_ranges: Optional[Sequence[Sequence[float]]] = None,
        k: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> "SearchEngine":
        """Install a reranker by kind.

        Accepted kinds: ``rrf`` / ``reciprocal_rank_fusion``, ``rsf`` /
        ``relative_score_fusion``, ``dbsf`` / ``distribution_based_score_fusion``.
        Raises ``ConfigurationError`` for anything else.
        """
        self._reranker = create_reranker(
            kind,
            weights=weights,
            scale_ranges=scale_ranges,
            k=k if k is not None else self._default_k,
            limit=limit,
        )
        logger.debug(
            "Reranker set",
            algorithm=self._reranker.algorithm,
            retriever_count=len(self._retrievers),
        )
        return self

    def _check_ready(self) -> None:
        if not self._retrievers:
            raise ConfigurationError("No retriever added to the search engine")
        if len(self._retrievers) > 1:
            if self._reranker is None:
                raise ConfigurationError(
                    "More than one retriever added to the search engine, but no reranker is set"
                )
            self._reranker.validate(len(self._retrievers))

    async def _retrieve_all(self, query: Query) -> List[List[Candidate]]:
        """Run every retriever concurrently; results follow registration order.

        The first failure cancels the remaining retrievals and is re-raised.
        """
        tasks = [
            asyncio.create_task(retriever.retrieve(query))
            for retriever in self._retrievers
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _fuse(self, candidate_lists: List[List[Candidate]]) -> List[Candidate]:
        start_time = time.time()
        with trace_span(
            "vector_search.fuse",
            enabled=self.tracing_enabled,
            algorithm=self._reranker.algorithm,
            list_count=len(candidate_lists),
        ):
            fused = self._reranker.rerank(candidate_lists)

        if self.metrics is not None:
            self.metrics.record_fusion(self._reranker.algorithm, time.time() - start_time)
        return fused

    async def search(self, query: Query) -> List[Candidate]:
        """Search every retriever and return one ranked candidate list.

        With a single retriever its list is returned unchanged. With several,
        the lists are fused by the reranker in registration order.

        Raises
        - ``ConfigurationError`` before any query when misconfigured
        - ``RetrievalError`` / ``MissingKeyError`` from the first failing retriever
        """
        start_time = time.time()
        query_repr = query[:50] if isinstance(query, str) else type(query).__name__
        logger.debug("Search started", query=query_repr, retriever_count=len(self._retrievers))

        try:
            self._check_ready()

            with trace_span(
                "vector_search.search",
                enabled=self.tracing_enabled,
                retriever_count=len(self._retrievers),
            ):
                candidate_lists = await self._retrieve_all(query)

                if len(candidate_lists) == 1:
                    results = candidate_lists[0]
                else:
                    results = self._fuse(candidate_lists)

        except Exception as e:
            if self.metrics is not None:
                self.metrics.record_search("error", time.time() - start_time)
            logger.error("Search failed", query=query_repr, error=str(e))
            raise

        duration = time.time() - start_time
        if self.metrics is not None:
            self.metrics.record_search("success", duration)

        logger.info(
            "Search completed",
            query=query_repr,
            retriever_count=len(self._retrievers),
            results_count=len(results),
            duration_ms=duration * 1000,
        )
        return results
