"""Tests for search engine orchestration."""

import time

import pytest

from vector_search import SearchEngine
from vector_search.common.config import SearchEngineConfig
from vector_search.common.metrics import SearchMetrics
from vector_search.ranking.fusion import ReciprocalRankFusion, RelativeScoreFusion
from vector_search.search import engine as engine_module
from vector_search.search.base import (
    ConfigurationError,
    MissingKeyError,
    RetrievalError,
    SearchEngineError,
)

from .conftest import FakeQueryClient


def two_source_engine(client, **reranker):
    engine = SearchEngine(client).add_retriever("Dense").add_retriever("Sparse")
    if reranker:
        engine.set_reranker(**reranker)
    return engine


class TestConfiguration:
    """Misconfiguration is reported before any query is sent."""

    @pytest.mark.asyncio
    async def test_no_retrievers(self, fake_client):
        with pytest.raises(ConfigurationError, match="No retriever"):
            await SearchEngine(fake_client).search("x")
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_multiple_retrievers_without_reranker(self, fake_client):
        engine = two_source_engine(fake_client)
        with pytest.raises(ConfigurationError, match="no reranker is set"):
            await engine.search("x")
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_add_retriever_clears_reranker(self, fake_client):
        engine = SearchEngine(fake_client).add_retriever("Dense").set_reranker("rrf")
        assert isinstance(engine.reranker, ReciprocalRankFusion)

        engine.add_retriever("Sparse")
        assert engine.reranker is None
        with pytest.raises(ConfigurationError):
            await engine.search("x")
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_scale_range_mismatch(self, fake_client):
        engine = two_source_engine(fake_client, kind="dbsf", scale_ranges=[[0, 1]])
        with pytest.raises(ConfigurationError, match="scaleRanges"):
            await engine.search("x")
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_weights_mismatch(self, fake_client):
        engine = two_source_engine(fake_client, kind="rrf", weights=[1, 1, 1])
        with pytest.raises(ConfigurationError, match="weights"):
            await engine.search("x")
        assert fake_client.calls == []

    def test_unknown_reranker_kind(self, fake_client):
        with pytest.raises(ConfigurationError, match="Invalid reranker type: bm25"):
            SearchEngine(fake_client).set_reranker("bm25")

    def test_invalid_retriever(self, fake_client):
        with pytest.raises(ConfigurationError):
            SearchEngine(fake_client).add_retriever("Docs", limit=0)

    def test_fluent_configuration(self, fake_client):
        engine = SearchEngine(fake_client)
        assert engine.add_retriever("Dense") is engine
        assert engine.set_reranker("rsf") is engine
        assert len(engine) == 1
        assert engine.retrievers[0].config.table == "Dense"
        assert isinstance(engine.reranker, RelativeScoreFusion)

    def test_retriever_defaults(self, fake_client):
        engine = SearchEngine(fake_client).add_retriever("Docs")
        config = engine.retrievers[0].config
        assert config.primary_key_field == "ID"
        assert config.limit == 2
        assert config.filter == ""

    def test_from_config(self, fake_client, monkeypatch):
        monkeypatch.setenv("VS_DEFAULT_LIMIT", "7")
        monkeypatch.setenv("VS_DEFAULT_PRIMARY_KEY", "DocId")
        monkeypatch.setenv("VS_RRF_K", "10")
        monkeypatch.setenv("VS_METRICS_ENABLED", "false")

        engine = SearchEngine.from_config(fake_client, SearchEngineConfig())
        engine.add_retriever("Docs").set_reranker("rrf")

        assert engine.retrievers[0].config.limit == 7
        assert engine.retrievers[0].config.primary_key_field == "DocId"
        assert engine.reranker.k == 10.0
        assert engine.metrics is None

        engine.add_retriever("Other", limit=3).set_reranker("rrf", k=60)
        assert engine.retrievers[1].config.limit == 3
        assert engine.reranker.k == 60.0


class TestSearch:
    """Retrieval, fusion and failure propagation."""

    @pytest.mark.asyncio
    async def test_single_retriever_returns_raw_list(self, fake_client):
        # A stale reranker must not be applied to a single list.
        engine = SearchEngine(fake_client).add_retriever("Dense").set_reranker("rrf", limit=1)
        results = await engine.search("x")

        assert [c.id for c in results] == [1, 2]
        assert [c.distance for c in results] == [0.1, 0.5]

    @pytest.mark.asyncio
    async def test_rrf_end_to_end(self, fake_client):
        engine = two_source_engine(fake_client, kind="rrf", weights=[1, 1], k=50)
        results = await engine.search("european capitals")

        assert [c.id for c in results] == [2, 1, 3]
        assert [table for table, _ in fake_client.calls] == ["Dense", "Sparse"]
        assert all(config["withDistance"] for _, config in fake_client.calls)
        assert all(config["query"] == "european capitals" for _, config in fake_client.calls)

        scores = {c.id: s for c, s in engine.reranker.score([
            await engine.retrievers[0].retrieve("x"),
            await engine.retrievers[1].retrieve("x"),
        ])}
        assert scores[2] == pytest.approx(1 / 52 + 1 / 51)
        assert scores[1] == pytest.approx(1 / 51)
        assert scores[3] == pytest.approx(1 / 52)

    @pytest.mark.asyncio
    async def test_rsf_end_to_end(self, fake_client):
        results = await two_source_engine(fake_client, kind="relative_score_fusion").search("x")
        assert [c.id for c in results] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_dbsf_end_to_end(self, fake_client):
        engine = two_source_engine(fake_client, kind="dbsf", scale_ranges=[[0, 1], [0, 0.5]], limit=2)
        results = await engine.search("x")
        assert [c.id for c in results] == [2, 1]

    @pytest.mark.asyncio
    async def test_fusion_follows_registration_order(self, two_source_results):
        slow_first = FakeQueryClient(two_source_results, delays={"Dense": 0.05})
        fast_first = FakeQueryClient(two_source_results, delays={"Sparse": 0.05})

        results_a = await two_source_engine(slow_first, kind="rrf").search("x")
        results_b = await two_source_engine(fast_first, kind="rrf").search("x")

        assert slow_first.completed == ["Sparse", "Dense"]
        assert fast_first.completed == ["Dense", "Sparse"]
        assert [c.id for c in results_a] == [c.id for c in results_b] == [2, 1, 3]

    @pytest.mark.asyncio
    async def test_retrievals_run_concurrently(self, two_source_results):
        client = FakeQueryClient(two_source_results, delays={"Dense": 0.2, "Sparse": 0.2})
        engine = two_source_engine(client, kind="rrf")

        start = time.perf_counter()
        await engine.search("x")
        assert time.perf_counter() - start < 0.35

    @pytest.mark.asyncio
    async def test_first_failure_fails_search(self, two_source_results):
        client = FakeQueryClient(
            two_source_results,
            delays={"Dense": 1.0},
            errors={"Sparse": {"statusCode": 500, "message": "Internal error"}},
        )
        engine = two_source_engine(client, kind="rrf")

        start = time.perf_counter()
        with pytest.raises(RetrievalError, match="table Sparse"):
            await engine.search("x")
        assert time.perf_counter() - start < 0.5
        assert "Dense" not in client.completed

    @pytest.mark.asyncio
    async def test_missing_key_fails_search(self):
        client = FakeQueryClient({"Dense": [{"ID": 1}], "Sparse": [{"Doc": "no key"}]})
        engine = two_source_engine(client, kind="rsf")

        with pytest.raises(MissingKeyError):
            await engine.search("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "record",
        [{"ID": None, "@distance": 0.1}, {"ID": 1, "@distance": "n/a"}],
    )
    async def test_malformed_record_fails_search(self, record):
        client = FakeQueryClient({"Dense": [record]})
        engine = SearchEngine(client).add_retriever("Dense")

        with pytest.raises(SearchEngineError, match="table Dense"):
            await engine.search("x")

    @pytest.mark.asyncio
    async def test_vector_query(self, fake_client):
        engine = SearchEngine(fake_client).add_retriever("Dense", query_field="Embedding")
        await engine.search([0.35, 0.55, 0.47, 0.94])

        _, config = fake_client.calls[0]
        assert config["queryVector"] == [0.35, 0.55, 0.47, 0.94]
        assert "query" not in config

    @pytest.mark.asyncio
    async def test_search_logs_start_and_finish(self, fake_client, monkeypatch):
        events = []

        class RecordingLogger:
            def _record(self, level):
                return lambda event, **kw: events.append((level, event))

            def __getattr__(self, level):
                return self._record(level)

        monkeypatch.setattr(engine_module, "logger", RecordingLogger())
        await two_source_engine(fake_client, kind="rrf").search("x")

        assert ("debug", "Search started") in events
        assert events[-1] == ("info", "Search completed")

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, fake_client):
        metrics = SearchMetrics()
        engine = SearchEngine(fake_client, metrics=metrics)
        engine.add_retriever("Dense").add_retriever("Sparse").set_reranker("rrf")

        await engine.search("x")
        with pytest.raises(ConfigurationError):
            await engine.add_retriever("Third").search("x")

        output = metrics.get_metrics()
        assert 'vs_search_requests_total{status="success"} 1.0' in output
        assert 'vs_search_requests_total{status="error"} 1.0' in output
        assert 'vs_retrieval_candidates_total{table="Dense"} 2.0' in output
        assert 'vs_fusion_duration_seconds_count{algorithm="rrf"} 1.0' in output
