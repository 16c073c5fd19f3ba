"""
Run orchestration for Aeyez.

Drives the query x provider matrix for a site, scores every answer and
records per-run progress and summary scores.

Example:
    >>> from aeyez.runner import AnalysisRunner
    >>> runner = AnalysisRunner(store, factory)
    >>> run_id = await runner.run_analysis("site-1")
"""

from .models import (
    Difficulty,
    Query,
    QueryType,
    Result,
    Run,
    RunStatus,
    Site,
    SummaryScores,
    summarize_results,
)
from .orchestrator import AnalysisRunner, resolve_providers

__all__ = [
    # Orchestrator
    "AnalysisRunner",
    "resolve_providers",
    # Data classes
    "Query",
    "Result",
    "Run",
    "Site",
    "SummaryScores",
    # Enums
    "Difficulty",
    "QueryType",
    "RunStatus",
    # Functions
    "summarize_results",
]
