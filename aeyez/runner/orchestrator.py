"""
Run orchestrator for Aeyez.

run_analysis() drives the query x provider matrix for one site:

- Resolve providers and the site (errors here create no run)
- Create a PENDING run, load queries by priority, start the run
- For every query (priority order), for every provider (given order):
  wait on that provider's rate limiter, query it, score the answer and
  persist a Result
- Summarise persisted Results and complete the run

A cell that fails (provider error, scoring error, storage error) is logged
and counted; it produces no Result. Anything else that escapes the matrix
marks the run FAILED and is re-raised.

Example:
    >>> store = SQLiteRunStore(config.database_path)
    >>> runner = AnalysisRunner(store, GatewayFactory(config), settings=config)
    >>> run_id = await runner.run_analysis("site-1", providers=["openai"])
    >>> run = await runner.get_run_results(run_id)
    >>> run.status
    <RunStatus.COMPLETED: 'COMPLETED'>
"""

import dataclasses
import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from aeyez.config.schema import AnalysisSettings, RuntimeConfig
from aeyez.exceptions import NoQueriesError, SiteNotFoundError
from aeyez.gateway.models import GatewayFactory, ProviderId, ProviderRequest
from aeyez.gateway.rate_limiter import RateLimiter
from aeyez.runner.models import Query, Result, Run, Site, summarize_results
from aeyez.scoring.engine import ScoringEngine
from aeyez.utils.logging import log_with_context

if TYPE_CHECKING:
    from aeyez.storage.base import RunStore

logger = logging.getLogger(__name__)


def resolve_providers(providers: Sequence[ProviderId | str]) -> list[ProviderId]:
    """
    Coerce provider identifiers and drop repeats, keeping first occurrence.

    Raises:
        ValueError: If any identifier is unsupported

    Example:
        >>> resolve_providers(["google", "openai", "google"])
        [<ProviderId.GOOGLE: 'google'>, <ProviderId.OPENAI: 'openai'>]
    """
    resolved: list[ProviderId] = []
    for provider in providers:
        provider_id = ProviderId.coerce(provider)
        if provider_id in resolved:
            logger.warning(f"Ignoring duplicate provider '{provider_id.value}'")
            continue
        resolved.append(provider_id)

    if not resolved:
        raise ValueError("At least one provider is required")
    return resolved


class AnalysisRunner:
    """
    Executes analysis runs against a RunStore.

    Args:
        store: Persistence for sites, queries, runs and results
        gateway_factory: Resolves provider ids to gateways
        scoring_engine: Scores answers (built from the factory if omitted)
        settings: RuntimeConfig or bare AnalysisSettings; defaults to the
            factory's configuration, then to AnalysisSettings()
        rate_limiters: Per-provider limiters; missing ones are built from
            the provider's requests/tokens per minute
        progress_callback: Called with the Run after every attempted cell
    """

    def __init__(
        self,
        store: "RunStore",
        gateway_factory: GatewayFactory,
        scoring_engine: ScoringEngine | None = None,
        settings: RuntimeConfig | AnalysisSettings | None = None,
        rate_limiters: Mapping[ProviderId, RateLimiter] | None = None,
        progress_callback: Callable[[Run], None] | None = None,
    ):
        if settings is None:
            settings = gateway_factory.config

        self.runtime_config: RuntimeConfig | None = None
        if isinstance(settings, RuntimeConfig):
            self.runtime_config = settings
            self.settings = settings.analysis
        else:
            self.settings = settings or AnalysisSettings()

        if scoring_engine is None:
            if self.runtime_config is not None:
                scoring_engine = ScoringEngine(
                    gateway_factory, self.runtime_config.scoring.embedding_providers
                )
            else:
                scoring_engine = ScoringEngine(gateway_factory)

        self.store = store
        self.gateway_factory = gateway_factory
        self.scoring_engine = scoring_engine
        self.rate_limiters: dict[ProviderId, RateLimiter] = dict(rate_limiters or {})
        self.progress_callback = progress_callback

    def rate_limiter_for(self, provider: ProviderId) -> RateLimiter:
        """Return the provider's limiter, creating it from settings on first use."""
        limiter = self.rate_limiters.get(provider)
        if limiter is None:
            if self.runtime_config is not None:
                provider_settings = self.runtime_config.provider(provider.value).settings
                limiter = RateLimiter(
                    max_requests_per_minute=provider_settings.requests_per_minute,
                    max_tokens_per_minute=provider_settings.tokens_per_minute,
                )
            else:
                limiter = RateLimiter()
            self.rate_limiters[provider] = limiter
        return limiter

    async def run_analysis(
        self,
        site_id: str,
        providers: Sequence[ProviderId | str] | None = None,
        query_count: int | None = None,
    ) -> str:
        """
        Run every selected query against every provider and score the answers.

        Args:
            site_id: Site to analyze
            providers: Provider order (defaults to settings.providers)
            query_count: Maximum number of queries (defaults to settings.query_count)

        Returns:
            The new run id

        Raises:
            ValueError: Unsupported provider or non-positive query_count
                (no run is created)
            SiteNotFoundError: Unknown site (no run is created)
            NoQueriesError: Site has no enabled queries (run is FAILED)
        """
        provider_ids = resolve_providers(
            providers if providers is not None else self.settings.providers
        )
        limit = query_count if query_count is not None else self.settings.query_count
        if limit <= 0:
            raise ValueError(f"query_count must be positive, got: {limit}")

        site = await self.store.get_site(site_id)
        if site is None:
            raise SiteNotFoundError(f"Site not found: {site_id}")

        run = Run(
            id=uuid.uuid4().hex,
            site_id=site.id,
            providers=provider_ids,
            query_count=limit,
        )
        await self.store.create_run(run)

        log_with_context(
            logger,
            logging.INFO,
            f"Created run {run.id} for site {site.domain}",
            context={
                "site_id": site.id,
                "providers": [p.value for p in provider_ids],
                "query_count": limit,
            },
            run_id=run.id,
        )

        try:
            queries = await self.store.load_queries(site.id, limit)
            if not queries:
                raise NoQueriesError(f"No enabled queries for site {site.id}")

            run.start(len(queries) * len(provider_ids))
            await self.store.update_run(run)

            for query in queries:
                for provider in provider_ids:
                    await self._run_cell(run, site, query, provider)

                    run.advance()
                    await self.store.update_run(run)
                    if self.progress_callback is not None:
                        self.progress_callback(run)

            results = await self.store.list_results(run.id)
            summary = summarize_results(results)
            if summary is None:
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Run {run.id} finished with no results",
                    context={"total": run.total},
                    run_id=run.id,
                )

            # Persist COMPLETED from a copy so a failed write leaves run RUNNING
            finished = dataclasses.replace(run)
            finished.complete(summary)
            await self.store.update_run(finished)
            run = finished

        except Exception as e:
            log_with_context(
                logger,
                logging.ERROR,
                f"Run {run.id} failed: {e}",
                context={"progress": run.progress, "total": run.total},
                run_id=run.id,
                exc_info=True,
            )
            run.fail(str(e))
            try:
                await self.store.update_run(run)
            except Exception:
                log_with_context(
                    logger,
                    logging.ERROR,
                    f"Could not record failure of run {run.id}",
                    run_id=run.id,
                    exc_info=True,
                )
            raise

        log_with_context(
            logger,
            logging.INFO,
            f"Run {run.id} completed: {run.progress}/{run.total} cells, "
            f"{summary.result_count if summary else 0} results",
            context={
                "progress": run.progress,
                "total": run.total,
                "summary": dataclasses.asdict(summary) if summary else None,
            },
            run_id=run.id,
        )
        return run.id

    async def _run_cell(
        self, run: Run, site: Site, query: Query, provider: ProviderId
    ) -> None:
        """Query one provider for one query; failures are logged, not raised."""
        cell = {"query_id": query.id, "provider": provider.value}

        try:
            gateway = self.gateway_factory.get(provider)
            if not gateway.is_available():
                log_with_context(
                    logger,
                    logging.INFO,
                    f"Skipping query {query.id} for {provider.value}: "
                    "provider unavailable",
                    context=cell,
                    run_id=run.id,
                )
                return

            await self.rate_limiter_for(provider).acquire(self.settings.estimated_tokens)

            response = await gateway.query(
                ProviderRequest.from_prompt(
                    query.canonical,
                    temperature=self.settings.temperature,
                    max_tokens=self.settings.max_tokens,
                )
            )
            breakdown = await self.scoring_engine.analyze_response(
                query.canonical, query.expected_answer, response.content, site.domain
            )
            await self.store.save_result(
                Result.from_response(run.id, query, response, breakdown)
            )

            log_with_context(
                logger,
                logging.DEBUG,
                f"Scored query {query.id} for {provider.value}",
                context={
                    **cell,
                    "model": response.model,
                    "latency_ms": response.latency_ms,
                    "cost_usd": response.cost_usd,
                    "accuracy": breakdown.accuracy.score,
                    "completeness": breakdown.completeness.score,
                    "attribution": breakdown.attribution.score,
                },
                run_id=run.id,
            )

        except Exception as e:
            log_with_context(
                logger,
                logging.ERROR,
                f"Query {query.id} failed for {provider.value}: {e}",
                context=cell,
                run_id=run.id,
                exc_info=True,
            )

    async def get_run_results(self, run_id: str) -> Run | None:
        """
        Return the run with its Results, lowest accuracy first.

        Returns None if the run does not exist.
        """
        run = await self.store.get_run(run_id)
        if run is None:
            return None

        results = await self.store.list_results(run_id)
        run.results = sorted(results, key=lambda r: r.accuracy_score)
        return run
