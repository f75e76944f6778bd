"""Tests for run pointers and history reconciliation."""

import asyncio

import pytest

from puod.connectors.base import QueryResult
from puod.history import RunHistoryCache, RunHistoryReconciler, RunPointer
from puod.history.run_history import NO_RUNS_STATE


def run(number, dag_id="etl"):
    return {
        "dag_id": dag_id,
        "dag_run_id": f"run#{number}",
        "state": "success",
        "end_date": f"2024-05-01T00:{number:02d}:00+00:00",
    }


def ids(rows):
    return [row["dag_run_id"] for row in rows]


class FakeQueries:
    """Async stand-in for the pipeline's execute_query."""

    def __init__(self, batches=None, failing=()):
        self.batches = batches or {}
        self.failing = set(failing)
        self.queries = []

    async def __call__(self, integration_id, query):
        self.queries.append((integration_id, query))
        dag_id = query.split("/")[4]
        if dag_id in self.failing:
            return QueryResult.failed("Airflow API error: 503")
        return QueryResult.from_rows(list(self.batches.get(dag_id, [])), 1.0)


@pytest.fixture
def cache():
    return RunHistoryCache()


def make_reconciler(cache, queries=None, **kwargs):
    return RunHistoryReconciler(cache, queries or FakeQueries(), integration_id=1, **kwargs)


class TestReconcile:
    def test_first_fetch_uses_rest_of_batch(self, cache):
        reconciler = make_reconciler(cache)

        pointer = reconciler.reconcile("etl", [run(n) for n in (3, 7, 5, 1, 2, 6, 4)])

        assert pointer.latest["dag_run_id"] == "run#7"
        assert ids(pointer.history) == ["run#6", "run#5", "run#4", "run#3", "run#2"]
        assert cache.get("etl") is pointer

    def test_rotation_carries_previous_latest(self, cache):
        reconciler = make_reconciler(cache)
        cache.apply("etl", RunPointer(latest=run(10), history=[run(9), run(8)]))

        pointer = reconciler.reconcile("etl", [run(n) for n in (11, 10, 9, 8, 7)])

        assert pointer.latest["dag_run_id"] == "run#11"
        assert ids(pointer.history) == ["run#10", "run#9", "run#8"]

        again = reconciler.reconcile("etl", [run(n) for n in (11, 10, 9, 8, 7)])

        assert again.latest["dag_run_id"] == "run#11"
        assert ids(again.history) == ["run#10", "run#9", "run#8"]

    def test_history_capped_and_never_contains_latest(self, cache):
        reconciler = make_reconciler(cache)
        cache.apply(
            "etl",
            RunPointer(latest=run(10), history=[run(n) for n in (9, 8, 7, 6, 5)] + [run(11)]),
        )

        pointer = reconciler.reconcile("etl", [run(11)])

        assert ids(pointer.history) == ["run#10", "run#9", "run#8", "run#7", "run#6"]
        assert "run#11" not in ids(pointer.history)

    def test_rows_without_run_id_are_dropped_on_rotation(self, cache):
        reconciler = make_reconciler(cache)
        cache.apply("etl", RunPointer(latest=run(2), history=[{"state": "queued"}, run(1)]))

        pointer = reconciler.reconcile("etl", [run(3)])

        assert ids(pointer.history) == ["run#2", "run#1"]

    def test_empty_batch_yields_placeholder(self, cache):
        reconciler = make_reconciler(cache)

        pointer = reconciler.reconcile("etl", [])

        assert pointer.latest == {"dag_id": "etl", "state": NO_RUNS_STATE}
        assert pointer.history == []

    def test_same_latest_keeps_history(self, cache):
        reconciler = make_reconciler(cache)
        cache.apply("etl", RunPointer(latest=run(4), history=[run(2)]))

        pointer = reconciler.reconcile("etl", [run(4), run(3)])

        assert ids(pointer.history) == ["run#2"]

    def test_placeholder_latest_never_leaves_new_latest_in_history(self, cache):
        reconciler = make_reconciler(cache)
        cache.apply(
            "etl",
            RunPointer(
                latest={"dag_id": "etl", "state": NO_RUNS_STATE},
                history=[run(9), run(8)],
            ),
        )

        pointer = reconciler.reconcile("etl", [run(9), run(8)])

        assert pointer.latest["dag_run_id"] == "run#9"
        assert ids(pointer.history) == ["run#8"]

    def test_custom_max_history(self, cache):
        reconciler = make_reconciler(cache, max_history=2)

        pointer = reconciler.reconcile("etl", [run(n) for n in range(1, 6)])

        assert ids(pointer.history) == ["run#4", "run#3"]

    def test_unparseable_dates_sort_last(self, cache):
        reconciler = make_reconciler(cache)
        undated = {"dag_run_id": "manual", "end_date": "not a date"}

        pointer = reconciler.reconcile("etl", [undated, run(1)])

        assert pointer.latest["dag_run_id"] == "run#1"
        assert ids(pointer.history) == ["manual"]


class TestRefresh:
    def test_refresh_builds_runs_query(self, cache):
        queries = FakeQueries({"etl": [run(1)]})
        reconciler = make_reconciler(cache, queries, page_size=10)

        pointer = asyncio.run(reconciler.refresh("etl"))

        assert pointer.latest["dag_run_id"] == "run#1"
        assert queries.queries == [(1, "/api/v1/dags/etl/dagRuns?order_by=-end_date&limit=10")]

    def test_failed_fetch_reconciles_empty_batch(self, cache):
        reconciler = make_reconciler(cache, FakeQueries(failing={"etl"}))

        pointer = asyncio.run(reconciler.refresh("etl"))

        assert pointer.latest["state"] == NO_RUNS_STATE

    def test_failed_fetch_keeps_cached_pointer(self, cache):
        cached = RunPointer(latest=run(10), history=[run(9), run(8)])
        cache.apply("etl", cached)
        reconciler = make_reconciler(cache, FakeQueries(failing={"etl"}))

        pointer = asyncio.run(reconciler.refresh("etl"))

        assert pointer is cached
        assert cache.get("etl") is cached

    def test_failed_fetch_then_newer_runs_keep_previous_latest(self, cache):
        cache.apply("etl", RunPointer(latest=run(10), history=[run(9), run(8)]))
        queries = FakeQueries(failing={"etl"})
        reconciler = make_reconciler(cache, queries)
        asyncio.run(reconciler.refresh("etl"))

        queries.failing.clear()
        queries.batches["etl"] = [run(11), run(10), run(9)]
        pointer = asyncio.run(reconciler.refresh("etl"))

        assert pointer.latest["dag_run_id"] == "run#11"
        assert ids(pointer.history) == ["run#10", "run#9", "run#8"]

    def test_failed_fetch_then_batch_headed_by_cached_run(self, cache):
        cache.apply("etl", RunPointer(latest=run(10), history=[run(9), run(8)]))
        queries = FakeQueries(failing={"etl"})
        reconciler = make_reconciler(cache, queries)
        asyncio.run(reconciler.refresh("etl"))

        queries.failing.clear()
        queries.batches["etl"] = [run(9), run(8)]
        pointer = asyncio.run(reconciler.refresh("etl"))

        assert pointer.latest["dag_run_id"] == "run#9"
        assert "run#9" not in ids(pointer.history)

    def test_refresh_all_fans_out(self, cache):
        queries = FakeQueries({"a": [run(1, "a")], "b": [run(2, "b"), run(1, "b")]})
        reconciler = make_reconciler(cache, queries)

        pointers = asyncio.run(reconciler.refresh_all(["a", "b", "a"]))

        assert sorted(pointers) == ["a", "b"]
        assert len(queries.queries) == 2
        assert ids(pointers["b"].history) == ["run#1"]
        assert len(cache) == 2
        assert "a" in cache

    def test_clear(self, cache):
        cache.apply("etl", RunPointer(latest=run(1)))
        cache.clear()

        assert cache.get("etl") is None
