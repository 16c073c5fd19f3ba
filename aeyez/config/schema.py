"""
Configuration schema models for Aeyez.

Pydantic v2 models for validating aeyez.yaml. Every section has defaults,
so an empty mapping (or no file at all, see loader.runtime_config_from_env)
yields a complete working configuration.

Models:
    ProviderSettings: Backend endpoint, models, defaults and rate ceilings
    AnalysisSettings: Run orchestrator defaults
    ExtractionSettings: Claim extractor thresholds and provider order
    ScoringSettings: Embedding provider order for the scoring engine
    AeyezConfig: Root configuration model (validates entire YAML)
    RuntimeProvider: ProviderSettings plus the resolved API key
    RuntimeConfig: Runtime configuration with resolved API keys
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from aeyez.config.constants import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_GOOGLE_ENV_KEY,
    DEFAULT_OPENAI_ENV_KEY,
)

ProviderName = Literal["openai", "google"]


class ProviderSettings(BaseModel):
    """
    Settings for a single AI backend.

    Attributes:
        env_api_key: Environment variable holding the API key
        base_url: API root (no trailing slash)
        model_name: Chat/generation model identifier
        embedding_model: Embedding model identifier
        temperature: Default sampling temperature when a request sets none
        max_tokens: Default output token ceiling when a request sets none
        timeout_seconds: Per-request transport timeout
        requests_per_minute: Rate limiter request ceiling
        tokens_per_minute: Rate limiter estimated-token ceiling
    """

    env_api_key: str
    base_url: str
    model_name: str
    embedding_model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout_seconds: float = 30.0
    requests_per_minute: int = 60
    tokens_per_minute: int = 60_000

    @field_validator("env_api_key", "base_url", "model_name", "embedding_model")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        """Validate string settings are non-empty."""
        if not v or v.isspace():
            raise ValueError("value cannot be empty")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature is within the range both backends accept."""
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"temperature must be between 0 and 2, got: {v}")
        return v

    @field_validator(
        "max_tokens", "timeout_seconds", "requests_per_minute", "tokens_per_minute"
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate limits are positive."""
        if v <= 0:
            raise ValueError(f"must be positive, got: {v}")
        return v


def default_provider_settings() -> dict[str, ProviderSettings]:
    """Return the built-in settings for every supported provider."""
    return {
        "openai": ProviderSettings(
            env_api_key=DEFAULT_OPENAI_ENV_KEY,
            base_url="https://api.openai.com/v1",
            model_name="gpt-4o-mini",
            embedding_model="text-embedding-3-small",
            max_tokens=4096,
        ),
        "google": ProviderSettings(
            env_api_key=DEFAULT_GOOGLE_ENV_KEY,
            base_url="https://generativelanguage.googleapis.com/v1beta",
            model_name="gemini-1.5-flash",
            embedding_model="text-embedding-004",
            max_tokens=8192,
        ),
    }


def _validate_provider_list(v: list[str]) -> list[str]:
    if not v:
        raise ValueError("provider list cannot be empty")
    if len(set(v)) != len(v):
        raise ValueError(f"provider list contains duplicates: {v}")
    return v


class AnalysisSettings(BaseModel):
    """
    Run orchestrator defaults.

    Attributes:
        providers: Provider order visited for every query
        query_count: Maximum number of queries per run
        temperature: Temperature sent with each query
        max_tokens: Output token ceiling sent with each query
        estimated_tokens: Token estimate passed to the rate limiter per call
    """

    providers: list[ProviderName] = Field(default_factory=lambda: ["openai", "google"])
    query_count: int = 50
    temperature: float = 0.7
    max_tokens: int = 2048
    estimated_tokens: int = 1000

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: list[str]) -> list[str]:
        """Validate providers is a non-empty list without duplicates."""
        return _validate_provider_list(v)

    @field_validator("query_count", "max_tokens", "estimated_tokens")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError(f"must be positive, got: {v}")
        return v


class ExtractionSettings(BaseModel):
    """
    Claim extractor thresholds.

    Attributes:
        providers: LLM tier provider order
        max_chunk_tokens: Estimated-token size above which input is split
        min_chunk_chars: Inputs shorter than this (trimmed) yield no claims
        min_sentence_chars: Rule-based tier drops shorter sentences
        temperature: Temperature for the extraction prompt
        max_tokens: Output token ceiling for the extraction prompt
    """

    providers: list[ProviderName] = Field(default_factory=lambda: ["openai", "google"])
    max_chunk_tokens: int = 1500
    min_chunk_chars: int = 30
    min_sentence_chars: int = 20
    temperature: float = 0.3
    max_tokens: int = 2048

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: list[str]) -> list[str]:
        """Validate providers is a non-empty list without duplicates."""
        return _validate_provider_list(v)


class ScoringSettings(BaseModel):
    """Embedding provider order for the scoring engine (first available wins)."""

    embedding_providers: list[ProviderName] = Field(
        default_factory=lambda: ["openai", "google"]
    )

    @field_validator("embedding_providers")
    @classmethod
    def validate_providers(cls, v: list[str]) -> list[str]:
        """Validate providers is a non-empty list without duplicates."""
        return _validate_provider_list(v)


class AeyezConfig(BaseModel):
    """
    Root configuration model for aeyez.yaml.

    Provider sections are merged over the built-in defaults, so a file only
    needs to mention the fields it changes:

        providers:
          openai:
            model_name: gpt-4o
        analysis:
          query_count: 20
    """

    providers: dict[ProviderName, ProviderSettings] = Field(
        default_factory=default_provider_settings
    )
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    database_path: str = DEFAULT_DATABASE_PATH

    @model_validator(mode="before")
    @classmethod
    def merge_provider_defaults(cls, data: Any) -> Any:
        """Overlay partial provider sections onto the built-in defaults."""
        if not isinstance(data, dict):
            return data

        overrides = data.get("providers")
        if overrides is None:
            return data
        if not isinstance(overrides, dict):
            raise ValueError("providers must be a mapping of provider name to settings")

        defaults = default_provider_settings()
        merged: dict[str, Any] = {
            name: settings.model_dump() for name, settings in defaults.items()
        }
        for name, section in overrides.items():
            base = merged.get(name, {})
            merged[name] = {**base, **(section or {})}

        return {**data, "providers": merged}


class RuntimeProvider(BaseModel):
    """
    Provider settings with the API key resolved from the environment.

    api_key is None when the environment variable is unset or blank; the
    matching gateway then reports is_available() == False.

    Security:
        api_key is excluded from repr so it never ends up in logs.
    """

    provider: ProviderName
    settings: ProviderSettings
    api_key: str | None = Field(default=None, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class RuntimeConfig(BaseModel):
    """Validated configuration with resolved API keys, ready for the gateways."""

    providers: dict[ProviderName, RuntimeProvider]
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    database_path: str = DEFAULT_DATABASE_PATH

    def provider(self, name: str) -> RuntimeProvider:
        """
        Return runtime settings for a provider.

        Raises:
            ValueError: If the provider is not configured
        """
        try:
            return self.providers[name]
        except KeyError:
            raise ValueError(
                f"Provider '{name}' is not configured. "
                f"Configured providers: {sorted(self.providers)}"
            ) from None
