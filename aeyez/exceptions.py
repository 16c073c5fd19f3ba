"""
Custom exceptions for Aeyez.

All exceptions inherit from AeyezError so callers can catch every
application error with a single except clause.

Exception Hierarchy:
    AeyezError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   └── ConfigValidationError
    ├── ProviderError
    │   ├── ProviderUnavailableError
    │   ├── ProviderAuthenticationError
    │   └── ProviderResponseError
    ├── ExtractionError
    │   └── ClaimParseError
    ├── RunError
    │   ├── SiteNotFoundError
    │   ├── NoQueriesError
    │   ├── RunNotFoundError
    │   └── InvalidRunTransitionError
    └── StorageError
        └── DuplicateResultError

Usage:
    from aeyez.exceptions import SiteNotFoundError

    try:
        run_id = await runner.run_analysis(site_id)
    except SiteNotFoundError as e:
        logger.error(f"Cannot analyze: {e}")
"""


class AeyezError(Exception):
    """
    Base exception for all Aeyez errors.

    Example:
        try:
            await runner.run_analysis(site_id)
        except AeyezError as e:
            logger.error(f"Application error: {e}")
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(AeyezError):
    """
    Base class for configuration-related errors.

    Missing provider credentials are NOT configuration errors: they make the
    provider unavailable instead.
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Configuration file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/path/to/aeyez.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Configuration file is invalid (YAML syntax or schema validation failed).

    Example:
        raise ConfigValidationError("analysis.query_count: must be positive")
    """

    pass


# ============================================================================
# Provider Errors
# ============================================================================


class ProviderError(AeyezError):
    """
    Base class for provider gateway errors.

    Transient transport errors (httpx.HTTPStatusError for 429/5xx,
    httpx.ConnectError, httpx.TimeoutException) are retried inside the
    gateway and surface unchanged once retries are exhausted.
    """

    pass


class ProviderUnavailableError(ProviderError):
    """
    A gateway was used without a configured credential, or no provider in a
    fallback list is available.

    Example:
        raise ProviderUnavailableError("Provider 'google' has no API key configured")
    """

    pass


class ProviderAuthenticationError(ProviderError):
    """
    Provider rejected the credential (HTTP 401/403). Never retried.
    """

    pass


class ProviderResponseError(ProviderError):
    """
    Provider returned a non-retryable error status or a malformed body.

    Example:
        raise ProviderResponseError("OpenAI response missing 'choices'")
    """

    pass


# ============================================================================
# Extraction Errors
# ============================================================================


class ExtractionError(AeyezError):
    """Base class for claim extraction errors."""

    pass


class ClaimParseError(ExtractionError):
    """
    Model output could not be parsed as a JSON array of claims.

    Raised inside the LLM tier and recovered there by falling through to the
    rule-based tier. Never escapes ClaimExtractor.extract_claims().
    """

    pass


# ============================================================================
# Run Errors
# ============================================================================


class RunError(AeyezError):
    """Base class for analysis run errors."""

    pass


class SiteNotFoundError(RunError):
    """
    Site to analyze does not exist. Raised before any run is created.

    Example:
        raise SiteNotFoundError("Site not found: site-123")
    """

    pass


class NoQueriesError(RunError):
    """
    Site has no enabled queries. Marks the run FAILED.
    """

    pass


class RunNotFoundError(RunError):
    """Run identifier does not exist in the store."""

    pass


class InvalidRunTransitionError(RunError):
    """
    Attempted run status change that the lifecycle does not allow.

    Example:
        raise InvalidRunTransitionError("Cannot transition run from COMPLETED to RUNNING")
    """

    pass


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(AeyezError):
    """Base class for run store errors."""

    pass


class DuplicateResultError(StorageError):
    """
    A Result already exists for the (run, query, provider) key.

    Example:
        raise DuplicateResultError("Result already stored for run=abc query=q1 provider=openai")
    """

    pass
