"""Shared fixtures: in-memory query clients."""

import asyncio
import time
from typing import Any, Dict, List, Optional

import pytest

from vector_search.vector_store.base import QueryClient


class FakeQueryClient(QueryClient):
    """Async client answering from canned per-table results.

    ``delays`` (seconds, per table) let tests control completion order;
    ``errors`` maps a table to an exception to raise or an error response to
    return.
    """

    def __init__(
        self,
        results: Dict[str, List[Dict[str, Any]]],
        delays: Optional[Dict[str, float]] = None,
        errors: Optional[Dict[str, Any]] = None,
    ):
        self.results = results
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls: List[tuple] = []
        self.completed: List[str] = []

    async def query(self, table: str, query_config: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((table, dict(query_config)))
        await asyncio.sleep(self.delays.get(table, 0))

        error = self.errors.get(table)
        if isinstance(error, BaseException):
            raise error
        if error is not None:
            return error

        self.completed.append(table)
        return {"statusCode": 200, "message": "Query search successfully.", "result": self.results.get(table, [])}


class SyncQueryClient:
    """Blocking client, as a plain HTTP SDK would be."""

    def __init__(self, results: Dict[str, List[Dict[str, Any]]]):
        self.results = results
        self.calls: List[tuple] = []

    def query(self, table: str, query_config: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((table, dict(query_config)))
        time.sleep(0.01)
        return {"statusCode": 200, "result": self.results.get(table, [])}


@pytest.fixture
def two_source_results():
    """Two ranked lists sharing record 2."""
    return {
        "Dense": [
            {"ID": 1, "Doc": "Berlin", "@distance": 0.1},
            {"ID": 2, "Doc": "London", "@distance": 0.5},
        ],
        "Sparse": [
            {"ID": 2, "Doc": "London", "@distance": 0.05},
            {"ID": 3, "Doc": "Moscow", "@distance": 0.2},
        ],
    }


@pytest.fixture
def fake_client(two_source_results):
    return FakeQueryClient(two_source_results)
