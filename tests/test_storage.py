"""
Tests for the storage package (base, memory, db).

Tests cover:
- select_queries(): enabled only, priority order (stable), limit
- InMemoryRunStore and SQLiteRunStore against the same RunStore contract
- DuplicateResultError on a second Result for a key
- RunNotFoundError on updating an unknown run
- SQLite schema versioning, idempotent init and JSON columns
- SQLite I/O runs in worker threads
"""

import sqlite3
import threading
from datetime import UTC, datetime

import pytest

from aeyez.exceptions import DuplicateResultError, RunNotFoundError
from aeyez.gateway.models import ProviderId
from aeyez.runner.models import Query, Result, Run, RunStatus, Site, SummaryScores
from aeyez.scoring.models import ExpectedAnswer
from aeyez.storage.base import select_queries
from aeyez.storage.db import (
    CURRENT_SCHEMA_VERSION,
    SQLiteRunStore,
    apply_migrations,
    get_schema_version,
    init_db_if_needed,
    insert_query,
    insert_site,
)
from aeyez.storage.memory import InMemoryRunStore

SITE = Site(id="site-1", domain="acme.com", name="Acme")

QUERIES = [
    Query(id="q-medium", site_id="site-1", canonical="What does Acme sell?", difficulty="MEDIUM"),
    Query(
        id="q-easy",
        site_id="site-1",
        canonical="When was Acme founded?",
        difficulty="EASY",
        expected_answer=ExpectedAnswer(key_claims=["Founded in 2020"], keywords=["2020"]),
    ),
    Query(id="q-hard", site_id="site-1", canonical="Who are Acme's investors?", difficulty="HARD"),
    Query(id="q-off", site_id="site-1", canonical="Disabled?", difficulty="EASY", enabled=False),
    Query(id="q-easy-2", site_id="site-1", canonical="Where is Acme?", difficulty="EASY"),
]


def make_result(query_id="q-easy", provider=ProviderId.OPENAI, accuracy=80):
    return Result(
        run_id="run-1",
        query_id=query_id,
        provider=provider,
        model="gpt-4o-mini",
        response="Acme was founded in 2020.",
        input_tokens=10,
        output_tokens=8,
        cost_usd=0.000012,
        latency_ms=250,
        accuracy_score=accuracy,
        completeness_score=100,
        attribution_score=40,
        feedback={"completeness": {"missing_claims": []}},
        responded_at=datetime(2025, 11, 2, 8, 30, 45, tzinfo=UTC),
    )


def make_run():
    return Run(
        id="run-1",
        site_id="site-1",
        providers=[ProviderId.OPENAI, ProviderId.GOOGLE],
        query_count=10,
        created_at=datetime(2025, 11, 2, 8, 0, 0, tzinfo=UTC),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        memory_store = InMemoryRunStore()
        memory_store.add_site(SITE)
        for query in QUERIES:
            memory_store.add_query(query)
        return memory_store

    db_path = tmp_path / "aeyez.db"
    sqlite_store = SQLiteRunStore(db_path)
    insert_site(db_path, SITE)
    for query in QUERIES:
        insert_query(db_path, query)
    return sqlite_store


class TestSelectQueries:
    """Test select_queries()."""

    def test_priority_order_stable_and_enabled_only(self):
        selected = select_queries(QUERIES, 10)

        assert [q.id for q in selected] == ["q-easy", "q-easy-2", "q-medium", "q-hard"]

    def test_limit(self):
        assert [q.id for q in select_queries(QUERIES, 2)] == ["q-easy", "q-easy-2"]


class TestRunStoreContract:
    """Behavior shared by every RunStore implementation."""

    @pytest.mark.asyncio
    async def test_get_site(self, store):
        assert await store.get_site("site-1") == SITE
        assert await store.get_site("missing") is None

    @pytest.mark.asyncio
    async def test_load_queries(self, store):
        queries = await store.load_queries("site-1", 3)

        assert [q.id for q in queries] == ["q-easy", "q-easy-2", "q-medium"]
        assert queries[0].expected_answer.key_claims == ("Founded in 2020",)

    @pytest.mark.asyncio
    async def test_load_queries_unknown_site(self, store):
        assert await store.load_queries("other", 10) == []

    @pytest.mark.asyncio
    async def test_run_round_trip(self, store):
        run = make_run()
        await store.create_run(run)

        run.start(4)
        run.advance()
        await store.update_run(run)
        stored = await store.get_run("run-1")

        assert stored.status is RunStatus.RUNNING
        assert stored.total == 4
        assert stored.progress == 1
        assert stored.providers == [ProviderId.OPENAI, ProviderId.GOOGLE]
        assert stored.started_at is not None

    @pytest.mark.asyncio
    async def test_completed_run_summary(self, store):
        run = make_run()
        await store.create_run(run)
        run.start(1)
        run.advance()
        run.complete(SummaryScores(accuracy=80, completeness=100, attribution=40, result_count=1))
        await store.update_run(run)

        stored = await store.get_run("run-1")

        assert stored.status is RunStatus.COMPLETED
        assert stored.summary == SummaryScores(80, 100, 40, 1)

    @pytest.mark.asyncio
    async def test_failed_run_error(self, store):
        run = make_run()
        await store.create_run(run)
        run.fail("No enabled queries")
        await store.update_run(run)

        stored = await store.get_run("run-1")

        assert stored.status is RunStatus.FAILED
        assert stored.error == "No enabled queries"
        assert stored.summary is None

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, store):
        assert await store.get_run("nope") is None

    @pytest.mark.asyncio
    async def test_update_unknown_run(self, store):
        with pytest.raises(RunNotFoundError):
            await store.update_run(make_run())

    @pytest.mark.asyncio
    async def test_stored_run_is_a_copy(self, store):
        run = make_run()
        await store.create_run(run)

        run.start(3)

        assert (await store.get_run("run-1")).status is RunStatus.PENDING

    @pytest.mark.asyncio
    async def test_save_and_list_results(self, store):
        await store.create_run(make_run())
        await store.save_result(make_result("q-easy", ProviderId.OPENAI))
        await store.save_result(make_result("q-easy", ProviderId.GOOGLE, accuracy=60))

        results = await store.list_results("run-1")

        assert len(results) == 2
        first = results[0]
        assert first.key == ("run-1", "q-easy", "openai")
        assert first.feedback == {"completeness": {"missing_claims": []}}
        assert first.responded_at == datetime(2025, 11, 2, 8, 30, 45, tzinfo=UTC)
        assert await store.list_results("other-run") == []

    @pytest.mark.asyncio
    async def test_duplicate_result_rejected(self, store):
        await store.create_run(make_run())
        await store.save_result(make_result())

        with pytest.raises(DuplicateResultError):
            await store.save_result(make_result())

        assert len(await store.list_results("run-1")) == 1


class TestSQLiteSchema:
    """SQLite-specific schema management."""

    def test_init_creates_file_and_parents(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "aeyez.db"

        init_db_if_needed(db_path)

        assert db_path.exists()

    def test_schema_version_recorded(self, tmp_path):
        db_path = tmp_path / "aeyez.db"
        init_db_if_needed(db_path)

        with sqlite3.connect(db_path) as conn:
            assert get_schema_version(conn) == CURRENT_SCHEMA_VERSION
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }

        assert {"sites", "queries", "runs", "results", "schema_version"} <= tables

    def test_init_is_idempotent(self, tmp_path):
        db_path = tmp_path / "aeyez.db"
        init_db_if_needed(db_path)
        init_db_if_needed(db_path)

        with sqlite3.connect(db_path) as conn:
            count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]

        assert count == CURRENT_SCHEMA_VERSION

    def test_newer_schema_rejected(self, tmp_path):
        db_path = tmp_path / "aeyez.db"
        init_db_if_needed(db_path)
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (CURRENT_SCHEMA_VERSION + 1, "2030-01-01T00:00:00Z"),
            )

        with pytest.raises(ValueError, match="newer than expected"):
            init_db_if_needed(db_path)

    def test_downgrade_rejected(self, tmp_path):
        with sqlite3.connect(tmp_path / "x.db") as conn:
            with pytest.raises(ValueError, match="Cannot downgrade"):
                apply_migrations(conn, 2, 1)

    @pytest.mark.asyncio
    async def test_list_results_includes_query_text(self, tmp_path):
        db_path = tmp_path / "aeyez.db"
        store = SQLiteRunStore(db_path)
        insert_site(db_path, SITE)
        insert_query(db_path, QUERIES[1])
        await store.create_run(make_run())
        await store.save_result(make_result("q-easy"))

        results = await store.list_results("run-1")

        assert results[0].query_text == "When was Acme founded?"

    @pytest.mark.asyncio
    async def test_expected_answer_stored_as_camel_case_json(self, tmp_path):
        db_path = tmp_path / "aeyez.db"
        SQLiteRunStore(db_path)
        insert_site(db_path, SITE)
        insert_query(db_path, QUERIES[1])

        with sqlite3.connect(db_path) as conn:
            raw = conn.execute(
                "SELECT expected_answer FROM queries WHERE id = ?", ("q-easy",)
            ).fetchone()[0]

        assert '"keyClaims":["Founded in 2020"]' in raw


class TestSQLiteThreading:
    """SQLite work happens off the event loop thread."""

    @pytest.mark.asyncio
    async def test_connections_opened_in_worker_threads(self, tmp_path, monkeypatch):
        db_path = tmp_path / "aeyez.db"
        store = SQLiteRunStore(db_path)
        insert_site(db_path, SITE)
        insert_query(db_path, QUERIES[1])

        loop_thread = threading.get_ident()
        connect_threads = []
        original_connect = store._connect

        def recording_connect():
            connect_threads.append(threading.get_ident())
            return original_connect()

        monkeypatch.setattr(store, "_connect", recording_connect)

        await store.get_site("site-1")
        await store.load_queries("site-1", 5)
        await store.create_run(make_run())
        await store.save_result(make_result())
        await store.list_results("run-1")
        await store.get_run("run-1")

        assert len(connect_threads) == 6
        assert loop_thread not in connect_threads

    @pytest.mark.asyncio
    async def test_integrity_errors_still_mapped(self, tmp_path):
        store = SQLiteRunStore(tmp_path / "aeyez.db")
        insert_site(store.db_path, SITE)
        insert_query(store.db_path, QUERIES[1])
        await store.create_run(make_run())
        await store.save_result(make_result())

        with pytest.raises(DuplicateResultError):
            await store.save_result(make_result())
