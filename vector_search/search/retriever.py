"""Single-source retriever.

A ``VectorRetriever`` pairs one query configuration with a query client and
turns a query into a ranked list of ``Candidate`` objects.
"""

import asyncio
import inspect
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
import structlog

from ..common.metrics import SearchMetrics
from ..common.tracing import trace_span
from ..vector_store.base import QueryVector, SparseVector, response_error, serialize_vector
from .base import Candidate, MissingKeyError, RetrievalError

logger = structlog.get_logger("vector_search.retriever")

Query = Union[str, Sequence[float], SparseVector]


class RetrieverConfig(BaseModel):
    """Query configuration owned by one retriever for its lifetime."""

    model_config = ConfigDict(frozen=True)

    table: str = Field(..., min_length=1)
    primary_key_field: str = "ID"
    query_index: Optional[str] = None
    query_field: Optional[str] = None
    query_vector: Optional[Any] = None
    response: Optional[List[str]] = None
    limit: int = Field(default=2, ge=1)
    filter: str = ""

    @field_validator("primary_key_field")
    @classmethod
    def _check_primary_key(cls, value: str) -> str:
        return value or "ID"

    @field_validator("query_vector")
    @classmethod
    def _check_query_vector(cls, value: Any) -> Any:
        if value is None or isinstance(value, SparseVector):
            return value
        if isinstance(value, dict):
            return SparseVector(indices=value.get("indices", []), values=value.get("values", []))
        if isinstance(value, (str, bytes)):
            raise ValueError("query_vector must be a sequence of numbers or a SparseVector")
        try:
            return [float(v) for v in value]
        except TypeError as e:
            raise ValueError(f"query_vector must be a sequence of numbers: {e}") from e

    def to_query_config(self, query: Optional[Query] = None) -> Dict[str, Any]:
        """Build the wire payload for ``query``.

        A text query is sent as ``query``; a vector query replaces the stored
        ``query_vector``. Unset optional keys are omitted and distances are
        always requested.
        """
        query_vector: Optional[QueryVector] = self.query_vector
        query_text: Optional[str] = None
        if isinstance(query, str):
            query_text = query
        elif query is not None:
            query_vector = query

        payload: Dict[str, Any] = {
            "query": query_text,
            "queryIndex": self.query_index,
            "queryField": self.query_field,
            "queryVector": serialize_vector(query_vector),
            "response": list(self.response) if self.response is not None else None,
            "limit": self.limit,
            "filter": self.filter,
            "withDistance": True,
        }
        return {key: value for key, value in payload.items() if value is not None}


class VectorRetriever:
    """Retrieves ranked candidates from one table.

    Parameters
    - client: Object exposing ``query(table, query_config)``; coroutine
      functions are awaited, blocking callables run in a worker thread
    - config: ``RetrieverConfig`` fixed for the retriever's lifetime
    - metrics: Optional ``SearchMetrics`` for per-call timings
    """

    def __init__(
        self,
        client: Any,
        config: RetrieverConfig,
        metrics: Optional[SearchMetrics] = None,
        tracing_enabled: bool = True,
    ):
        self.client = client
        self.config = config
        self.metrics = metrics
        self.tracing_enabled = tracing_enabled

    @property
    def table(self) -> str:
        return self.config.table

    async def _query(self, query_config: Dict[str, Any]) -> Any:
        query = self.client.query
        if inspect.iscoroutinefunction(query):
            return await query(self.table, query_config)

        response = await asyncio.to_thread(query, self.table, query_config)
        # Clients with a sync signature may still hand back an awaitable.
        if inspect.isawaitable(response):
            response = await response
        return response

    async def retrieve(self, query: Query) -> List[Candidate]:
        """Run the configured query and return candidates, best first.

        Raises
        - ``RetrievalError`` when the client raises or answers with an error
        - ``MissingKeyError`` when a record lacks the primary-key field
        """
        query_config = self.config.to_query_config(query)
        start_time = time.time()

        with trace_span(
            "vector_search.retrieve",
            enabled=self.tracing_enabled,
            table=self.table,
            limit=self.config.limit,
        ):
            try:
                response = await self._query(query_config)
            except Exception as e:
                logger.error("Query failed", table=self.table, error=str(e))
                raise RetrievalError(
                    f"Failed to retrieve data from table {self.table}: {e}",
                    table=self.table,
                ) from e

            error = response_error(response)
            if error is not None:
                logger.error("Query returned an error", table=self.table, error=error)
                raise RetrievalError(
                    f"Failed to retrieve data from table {self.table}: {error}",
                    table=self.table,
                )

            records = response.get("result") or []
            try:
                candidates = [
                    Candidate.from_record(record, self.config.primary_key_field, table=self.table)
                    for record in records
                ]
            except MissingKeyError:
                logger.error(
                    "Primary key missing from query result",
                    table=self.table,
                    primary_key_field=self.config.primary_key_field,
                )
                raise
            except RetrievalError as e:
                logger.error("Malformed record in query result", table=self.table, error=str(e))
                raise

        duration = time.time() - start_time
        if self.metrics is not None:
            self.metrics.record_retrieval(self.table, duration, len(candidates))

        logger.debug(
            "Retrieval completed",
            table=self.table,
            results_count=len(candidates),
            duration_ms=duration * 1000,
        )
        return candidates
