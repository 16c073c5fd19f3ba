"""
SQLite run store with schema versioning for Aeyez.

Tables:
- sites: Analyzed sites (written by upstream producers via insert_site)
- queries: Test questions with their expected answers (insert_query)
- runs: One row per analysis run, updated as the run progresses
- results: One row per (run, query, provider) cell, UNIQUE on that key

All timestamps are stored as ISO 8601 strings with 'Z' suffix (UTC).
JSON columns hold provider lists, expected answers, feedback and summaries.

Example usage:
    >>> store = SQLiteRunStore("./output/aeyez.db")
    >>> insert_site(store.db_path, Site(id="s1", domain="acme.com"))
    >>> runner = AnalysisRunner(store, factory)

Security:
    - ALL queries use parameterized statements
    - NO API keys are ever stored in the database
    - Connection context managers ensure proper cleanup
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path

from aeyez.exceptions import DuplicateResultError, RunNotFoundError
from aeyez.gateway.models import ProviderId
from aeyez.runner.models import Query, Result, Run, RunStatus, Site, SummaryScores
from aeyez.scoring.models import ExpectedAnswer

from ..utils.time import format_timestamp, parse_timestamp, utc_timestamp
from .base import select_queries

logger = logging.getLogger(__name__)

# Current schema version - increment when migrations are added
CURRENT_SCHEMA_VERSION = 1


def init_db_if_needed(db_path: str | Path) -> None:
    """
    Initialize the SQLite database with schema versioning.

    Creates the file and parent directory if needed and applies any pending
    migrations. Idempotent: a no-op when the schema is current.

    Raises:
        sqlite3.Error: If creation or migration fails
        ValueError: If the database schema is newer than this software
    """
    db_path_obj = Path(db_path)
    db_path_obj.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA foreign_keys = ON")

        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
        """)
        conn.commit()

        current_version = get_schema_version(conn)

        if current_version < CURRENT_SCHEMA_VERSION:
            logger.info(
                f"Database schema upgrade needed: "
                f"v{current_version} -> v{CURRENT_SCHEMA_VERSION}"
            )
            apply_migrations(conn, current_version, CURRENT_SCHEMA_VERSION)
        elif current_version > CURRENT_SCHEMA_VERSION:
            raise ValueError(
                f"Database schema version {current_version} is newer than "
                f"expected {CURRENT_SCHEMA_VERSION}. Update your software or "
                f"use a different database file."
            )


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the applied schema version, 0 for a fresh database."""
    result = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    return result if result is not None else 0


def apply_migrations(
    conn: sqlite3.Connection, from_version: int, to_version: int
) -> None:
    """
    Apply migrations from_version+1 .. to_version, each in its own transaction.

    Raises:
        ValueError: If from_version > to_version (downgrades not supported)
        sqlite3.Error: If a migration fails (that migration is rolled back)
    """
    if from_version > to_version:
        raise ValueError(
            f"Cannot downgrade schema from v{from_version} to v{to_version}."
        )

    for target_version in range(from_version + 1, to_version + 1):
        migration = MIGRATIONS.get(target_version)
        if migration is None:
            raise ValueError(f"No migration defined for version {target_version}")

        logger.info(f"Applying migration to schema version {target_version}")

        try:
            conn.execute("BEGIN")
            migration(conn)
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (target_version, utc_timestamp()),
            )
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(
                f"Migration to version {target_version} failed: {e}", exc_info=True
            )
            raise sqlite3.Error(
                f"Failed to migrate database to version {target_version}: {e}"
            ) from e


def _migrate_to_v1(conn: sqlite3.Connection) -> None:
    """Create sites, queries, runs and results tables."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS sites (
            id TEXT PRIMARY KEY,
            domain TEXT NOT NULL,
            name TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS queries (
            id TEXT PRIMARY KEY,
            site_id TEXT NOT NULL,
            canonical TEXT NOT NULL,
            query_type TEXT NOT NULL,
            difficulty TEXT NOT NULL,
            topic TEXT,
            enabled INTEGER NOT NULL DEFAULT 1,
            expected_answer TEXT NOT NULL,
            FOREIGN KEY (site_id) REFERENCES sites(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_queries_site ON queries(site_id)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS runs (
            id TEXT PRIMARY KEY,
            site_id TEXT NOT NULL,
            providers TEXT NOT NULL,
            query_count INTEGER NOT NULL,
            total INTEGER NOT NULL DEFAULT 0,
            progress INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL,
            started_at TEXT,
            completed_at TEXT,
            error TEXT,
            summary TEXT,
            FOREIGN KEY (site_id) REFERENCES sites(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_site ON runs(site_id)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS results (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            run_id TEXT NOT NULL,
            query_id TEXT NOT NULL,
            provider TEXT NOT NULL,
            model TEXT NOT NULL,
            response TEXT NOT NULL,
            input_tokens INTEGER NOT NULL,
            output_tokens INTEGER NOT NULL,
            cost_usd REAL NOT NULL,
            latency_ms INTEGER NOT NULL,
            accuracy_score INTEGER NOT NULL,
            completeness_score INTEGER NOT NULL,
            attribution_score INTEGER NOT NULL,
            feedback TEXT NOT NULL,
            responded_at TEXT NOT NULL,
            UNIQUE(run_id, query_id, provider),
            FOREIGN KEY (run_id) REFERENCES runs(id),
            FOREIGN KEY (query_id) REFERENCES queries(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_results_run ON results(run_id)")


MIGRATIONS = {
    1: _migrate_to_v1,
}


def insert_site(db_path: str | Path, site: Site) -> None:
    """Insert or replace a site row."""
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT OR REPLACE INTO sites (id, domain, name) VALUES (?, ?, ?)",
            (site.id, site.domain, site.name),
        )


def insert_query(db_path: str | Path, query: Query) -> None:
    """Insert or replace a query row with its expected answer as JSON."""
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO queries (
                id, site_id, canonical, query_type, difficulty, topic,
                enabled, expected_answer
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                query.id,
                query.site_id,
                query.canonical,
                _enum_value(query.query_type),
                _enum_value(query.difficulty),
                query.topic,
                1 if query.enabled else 0,
                query.expected_answer.model_dump_json(by_alias=True),
            ),
        )


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _optional_timestamp(value: str | None):
    return parse_timestamp(value) if value else None


def _summary_to_json(summary: SummaryScores | None) -> str | None:
    if summary is None:
        return None
    return json.dumps(
        {
            "accuracy": summary.accuracy,
            "completeness": summary.completeness,
            "attribution": summary.attribution,
            "result_count": summary.result_count,
        }
    )


def _row_to_query(row: sqlite3.Row) -> Query:
    return Query(
        id=row["id"],
        site_id=row["site_id"],
        canonical=row["canonical"],
        expected_answer=ExpectedAnswer.model_validate_json(row["expected_answer"]),
        difficulty=row["difficulty"],
        query_type=row["query_type"],
        topic=row["topic"],
        enabled=bool(row["enabled"]),
    )


def _row_to_run(row: sqlite3.Row) -> Run:
    summary = None
    if row["summary"]:
        summary = SummaryScores(**json.loads(row["summary"]))

    return Run(
        id=row["id"],
        site_id=row["site_id"],
        providers=[ProviderId(p) for p in json.loads(row["providers"])],
        query_count=row["query_count"],
        total=row["total"],
        progress=row["progress"],
        status=RunStatus(row["status"]),
        created_at=parse_timestamp(row["created_at"]),
        started_at=_optional_timestamp(row["started_at"]),
        completed_at=_optional_timestamp(row["completed_at"]),
        error=row["error"],
        summary=summary,
    )


def _row_to_result(row: sqlite3.Row) -> Result:
    return Result(
        run_id=row["run_id"],
        query_id=row["query_id"],
        provider=ProviderId(row["provider"]),
        model=row["model"],
        response=row["response"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        cost_usd=row["cost_usd"],
        latency_ms=row["latency_ms"],
        accuracy_score=row["accuracy_score"],
        completeness_score=row["completeness_score"],
        attribution_score=row["attribution_score"],
        feedback=json.loads(row["feedback"]),
        responded_at=parse_timestamp(row["responded_at"]),
        query_text=row["query_text"],
    )


class SQLiteRunStore:
    """
    RunStore backed by a SQLite file.

    Every operation opens its own connection inside a worker thread
    (asyncio.to_thread), so database I/O never blocks the event loop and one
    store can serve concurrent runs. The schema is created or migrated on
    construction.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        init_db_if_needed(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def get_site(self, site_id: str) -> Site | None:
        def _select():
            with self._connect() as conn:
                return conn.execute(
                    "SELECT id, domain, name FROM sites WHERE id = ?", (site_id,)
                ).fetchone()

        row = await asyncio.to_thread(_select)
        if row is None:
            return None
        return Site(id=row["id"], domain=row["domain"], name=row["name"])

    async def load_queries(self, site_id: str, limit: int) -> list[Query]:
        def _select():
            with self._connect() as conn:
                return conn.execute(
                    """
                    SELECT id, site_id, canonical, query_type, difficulty, topic,
                           enabled, expected_answer
                    FROM queries
                    WHERE site_id = ? AND enabled = 1
                    ORDER BY rowid
                    """,
                    (site_id,),
                ).fetchall()

        rows = await asyncio.to_thread(_select)
        return select_queries([_row_to_query(row) for row in rows], limit)

    async def create_run(self, run: Run) -> None:
        params = (
            run.id,
            run.site_id,
            json.dumps([p.value for p in run.providers]),
            run.query_count,
            run.total,
            run.progress,
            run.status.value,
            format_timestamp(run.created_at),
            format_timestamp(run.started_at) if run.started_at else None,
            format_timestamp(run.completed_at) if run.completed_at else None,
            run.error,
            _summary_to_json(run.summary),
        )

        def _insert():
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO runs (
                        id, site_id, providers, query_count, total, progress,
                        status, created_at, started_at, completed_at, error, summary
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )

        await asyncio.to_thread(_insert)

    async def update_run(self, run: Run) -> None:
        params = (
            run.total,
            run.progress,
            run.status.value,
            format_timestamp(run.started_at) if run.started_at else None,
            format_timestamp(run.completed_at) if run.completed_at else None,
            run.error,
            _summary_to_json(run.summary),
            run.id,
        )

        def _update() -> int:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    UPDATE runs
                    SET total = ?, progress = ?, status = ?, started_at = ?,
                        completed_at = ?, error = ?, summary = ?
                    WHERE id = ?
                    """,
                    params,
                )
                return cursor.rowcount

        if await asyncio.to_thread(_update) == 0:
            raise RunNotFoundError(f"Run does not exist: {run.id}")

    async def get_run(self, run_id: str) -> Run | None:
        def _select():
            with self._connect() as conn:
                return conn.execute(
                    "SELECT * FROM runs WHERE id = ?", (run_id,)
                ).fetchone()

        row = await asyncio.to_thread(_select)
        return _row_to_run(row) if row is not None else None

    async def save_result(self, result: Result) -> None:
        params = (
            result.run_id,
            result.query_id,
            result.provider.value,
            result.model,
            result.response,
            result.input_tokens,
            result.output_tokens,
            result.cost_usd,
            result.latency_ms,
            result.accuracy_score,
            result.completeness_score,
            result.attribution_score,
            json.dumps(result.feedback),
            format_timestamp(result.responded_at),
        )

        def _insert():
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO results (
                        run_id, query_id, provider, model, response,
                        input_tokens, output_tokens, cost_usd, latency_ms,
                        accuracy_score, completeness_score, attribution_score,
                        feedback, responded_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )

        try:
            await asyncio.to_thread(_insert)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            raise DuplicateResultError(
                f"Result already stored for run={result.run_id} "
                f"query={result.query_id} provider={result.provider.value}"
            ) from e

    async def list_results(self, run_id: str) -> list[Result]:
        def _select():
            with self._connect() as conn:
                return conn.execute(
                    """
                    SELECT r.*, q.canonical AS query_text
                    FROM results r
                    LEFT JOIN queries q ON q.id = r.query_id
                    WHERE r.run_id = ?
                    ORDER BY r.id
                    """,
                    (run_id,),
                ).fetchall()

        rows = await asyncio.to_thread(_select)
        return [_row_to_result(row) for row in rows]
