"""
In-memory RunStore.

Keeps everything in dicts and hands out copies, so callers can never mutate
stored state by accident. Used by tests and by embedders that persist
results themselves.
"""

import copy
import logging

from aeyez.exceptions import DuplicateResultError, RunNotFoundError
from aeyez.runner.models import Query, Result, Run, Site

from .base import select_queries

logger = logging.getLogger(__name__)


class InMemoryRunStore:
    def __init__(self):
        self.sites: dict[str, Site] = {}
        self.queries: dict[str, list[Query]] = {}
        self.runs: dict[str, Run] = {}
        self.results: dict[tuple[str, str, str], Result] = {}

    def add_site(self, site: Site) -> None:
        self.sites[site.id] = site

    def add_query(self, query: Query) -> None:
        self.queries.setdefault(query.site_id, []).append(query)

    async def get_site(self, site_id: str) -> Site | None:
        return self.sites.get(site_id)

    async def load_queries(self, site_id: str, limit: int) -> list[Query]:
        return select_queries(list(self.queries.get(site_id, [])), limit)

    async def create_run(self, run: Run) -> None:
        if run.id in self.runs:
            raise ValueError(f"Run already exists: {run.id}")
        self.runs[run.id] = copy.deepcopy(run)

    async def update_run(self, run: Run) -> None:
        if run.id not in self.runs:
            raise RunNotFoundError(f"Run does not exist: {run.id}")
        stored = copy.deepcopy(run)
        stored.results = []
        self.runs[run.id] = stored

    async def get_run(self, run_id: str) -> Run | None:
        run = self.runs.get(run_id)
        return copy.deepcopy(run) if run is not None else None

    async def save_result(self, result: Result) -> None:
        if result.key in self.results:
            raise DuplicateResultError(
                f"Result already stored for run={result.run_id} "
                f"query={result.query_id} provider={result.provider.value}"
            )
        self.results[result.key] = result
        logger.debug(f"Stored result {result.key}")

    async def list_results(self, run_id: str) -> list[Result]:
        return [r for key, r in self.results.items() if key[0] == run_id]
