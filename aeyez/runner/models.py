"""
Domain models for analysis runs.

Sites and queries are produced upstream (crawler, query generation) and are
read-only here. A Run is the one mutable record: it moves through
PENDING -> RUNNING -> COMPLETED | FAILED and its progress counter only grows.
Results are immutable, one per (run, query, provider) cell.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from aeyez.exceptions import InvalidRunTransitionError
from aeyez.gateway.models import ProviderId, ProviderResponse
from aeyez.scoring.models import ExpectedAnswer, ScoreBreakdown
from aeyez.scoring.similarity import round_score
from aeyez.utils.time import utc_now


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class QueryType(str, Enum):
    INFORMATIONAL = "INFORMATIONAL"
    NAVIGATIONAL = "NAVIGATIONAL"
    COMPARISON = "COMPARISON"
    TRANSACTIONAL = "TRANSACTIONAL"


PRIORITY_BY_DIFFICULTY = {
    Difficulty.EASY: 1.0,
    Difficulty.MEDIUM: 0.7,
    Difficulty.HARD: 0.4,
}
DEFAULT_PRIORITY = 0.5


def priority_for_difficulty(difficulty: Difficulty | str | None) -> float:
    """
    Map a difficulty to its priority weight.

    Examples:
        >>> priority_for_difficulty("EASY")
        1.0
        >>> priority_for_difficulty("UNKNOWN")
        0.5
    """
    try:
        return PRIORITY_BY_DIFFICULTY[Difficulty(difficulty)]
    except ValueError:
        return DEFAULT_PRIORITY


@dataclass(frozen=True)
class Site:
    id: str
    domain: str
    name: str | None = None


@dataclass(frozen=True)
class Query:
    """
    A test question for a site.

    Attributes:
        id: Query identifier
        site_id: Owning site
        canonical: Question text sent to providers
        expected_answer: Reference answer used for scoring
        difficulty: EASY, MEDIUM or HARD (other values get default priority)
        query_type: Intent category
        topic: Optional topic label
        enabled: Disabled queries are never run
    """

    id: str
    site_id: str
    canonical: str
    expected_answer: ExpectedAnswer = field(default_factory=ExpectedAnswer)
    difficulty: Difficulty | str = Difficulty.MEDIUM
    query_type: QueryType | str = QueryType.INFORMATIONAL
    topic: str | None = None
    enabled: bool = True

    @property
    def priority(self) -> float:
        return priority_for_difficulty(self.difficulty)


class RunStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


ALLOWED_TRANSITIONS = {
    RunStatus.PENDING: {RunStatus.RUNNING, RunStatus.FAILED},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


@dataclass(frozen=True)
class SummaryScores:
    """Mean sub-scores over the persisted Results of a run."""

    accuracy: int
    completeness: int
    attribution: int
    result_count: int


@dataclass(frozen=True)
class Result:
    """
    One persisted cell outcome: provider response plus its scores.

    Keyed by (run_id, query_id, provider); at most one per key.
    """

    run_id: str
    query_id: str
    provider: ProviderId
    model: str
    response: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    latency_ms: int
    accuracy_score: int
    completeness_score: int
    attribution_score: int
    feedback: dict[str, Any]
    responded_at: datetime
    query_text: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.run_id, self.query_id, self.provider.value)

    @classmethod
    def from_response(
        cls,
        run_id: str,
        query: Query,
        response: ProviderResponse,
        breakdown: ScoreBreakdown,
    ) -> "Result":
        return cls(
            run_id=run_id,
            query_id=query.id,
            provider=response.provider,
            model=response.model,
            response=response.content,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost_usd=response.cost_usd,
            latency_ms=response.latency_ms,
            accuracy_score=breakdown.accuracy.score,
            completeness_score=breakdown.completeness.score,
            attribution_score=breakdown.attribution.score,
            feedback=breakdown.to_feedback(),
            responded_at=response.responded_at,
            query_text=query.canonical,
        )


def summarize_results(results: list[Result]) -> SummaryScores | None:
    """
    Rounded mean of each sub-score, or None when there are no results.

    Example:
        >>> summarize_results([]) is None
        True
    """
    if not results:
        return None

    count = len(results)
    return SummaryScores(
        accuracy=round_score(sum(r.accuracy_score for r in results) / count),
        completeness=round_score(sum(r.completeness_score for r in results) / count),
        attribution=round_score(sum(r.attribution_score for r in results) / count),
        result_count=count,
    )


@dataclass
class Run:
    """
    One execution of the query x provider matrix for a site.

    Status changes go through start(), advance(), complete() and fail(),
    which enforce the lifecycle and the progress <= total invariant.

    Attributes:
        id: Run identifier
        site_id: Analyzed site
        providers: Provider order visited for each query
        query_count: Requested maximum number of queries
        total: Cell count (queries x providers), set by start()
        progress: Attempted cells so far
        status: Lifecycle state
        created_at / started_at / completed_at: UTC timestamps
        error: Failure message for FAILED runs
        summary: Mean scores for COMPLETED runs with at least one Result
        results: Populated by AnalysisRunner.get_run_results()
    """

    id: str
    site_id: str
    providers: list[ProviderId]
    query_count: int
    total: int = 0
    progress: int = 0
    status: RunStatus = RunStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    summary: SummaryScores | None = None
    results: list[Result] = field(default_factory=list)

    def start(self, total: int) -> None:
        if total < 0:
            raise ValueError(f"total cannot be negative, got: {total}")
        self._transition(RunStatus.RUNNING)
        self.total = total
        self.started_at = utc_now()

    def advance(self) -> None:
        """Count one attempted cell."""
        if self.status is not RunStatus.RUNNING:
            raise InvalidRunTransitionError(
                f"Cannot advance run {self.id} in status {self.status.value}"
            )
        if self.progress >= self.total:
            raise InvalidRunTransitionError(
                f"Run {self.id} progress would exceed total ({self.total})"
            )
        self.progress += 1

    def complete(self, summary: SummaryScores | None) -> None:
        self._transition(RunStatus.COMPLETED)
        self.summary = summary
        self.completed_at = utc_now()

    def fail(self, error: str) -> None:
        self._transition(RunStatus.FAILED)
        self.error = error

    def _transition(self, target: RunStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidRunTransitionError(
                f"Cannot transition run {self.id} from {self.status.value} "
                f"to {target.value}"
            )
        self.status = target
