"""
Run store interface consumed by the analysis runner.

The runner only needs these operations; which engine backs them is the
caller's choice. Two implementations ship with Aeyez: InMemoryRunStore
(storage/memory.py) and SQLiteRunStore (storage/db.py).
"""

from typing import Protocol

from aeyez.runner.models import Query, Result, Run, Site


class RunStore(Protocol):
    async def get_site(self, site_id: str) -> Site | None:
        """Return the site, or None if it does not exist."""
        ...

    async def load_queries(self, site_id: str, limit: int) -> list[Query]:
        """Return up to limit enabled queries, highest priority first (stable)."""
        ...

    async def create_run(self, run: Run) -> None: ...

    async def update_run(self, run: Run) -> None:
        """
        Persist status, progress, timestamps, error and summary.

        Raises:
            RunNotFoundError: If the run was never created
        """
        ...

    async def get_run(self, run_id: str) -> Run | None: ...

    async def save_result(self, result: Result) -> None:
        """
        Persist a Result.

        Raises:
            DuplicateResultError: If a Result exists for the same
                (run_id, query_id, provider)
        """
        ...

    async def list_results(self, run_id: str) -> list[Result]:
        """Return the run's Results with query_text filled in."""
        ...


def select_queries(queries: list[Query], limit: int) -> list[Query]:
    """Enabled queries sorted by priority descending (stable), truncated to limit."""
    enabled = [q for q in queries if q.enabled]
    enabled.sort(key=lambda q: q.priority, reverse=True)
    return enabled[:limit]
