"""
Core data models and interfaces for the provider gateway.

Defines the provider-agnostic contract every AI backend adapter satisfies,
the request/response value types, and the factory that resolves a provider
identifier to an adapter instance.

Key components:
- ProviderId: Closed set of supported backends
- Message / ProviderRequest: What callers send
- ProviderResponse: Immutable record of one completed call
- ProviderGateway: Protocol every adapter implements
- GatewayFactory: Resolves ProviderId -> adapter, one instance per provider

Callers must check is_available() before use: a provider without a
configured credential is a normal outcome, not an error.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from aeyez.config.schema import RuntimeConfig

logger = logging.getLogger(__name__)


class ProviderId(str, Enum):
    """Supported AI backends."""

    OPENAI = "openai"
    GOOGLE = "google"

    @classmethod
    def coerce(cls, value: "ProviderId | str") -> "ProviderId":
        """
        Convert a provider identifier string to ProviderId.

        Raises:
            ValueError: If the identifier is not a supported provider
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Unsupported provider: '{value}'. Supported providers: {supported}"
            ) from None


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    """One chat message. role is one of system, user, assistant."""

    role: Role
    content: str

    def __post_init__(self):
        if self.role not in ("system", "user", "assistant"):
            raise ValueError(f"Invalid message role: {self.role}")


@dataclass(frozen=True)
class ProviderRequest:
    """
    A chat request sent through a gateway.

    Attributes:
        messages: Ordered conversation, at least one message
        temperature: Sampling temperature, None uses the backend default
        max_tokens: Output token ceiling, None uses the backend default
    """

    messages: tuple[Message, ...]
    temperature: float | None = None
    max_tokens: int | None = None

    def __post_init__(self):
        # Accept any sequence but store a tuple
        object.__setattr__(self, "messages", tuple(self.messages))
        if not self.messages:
            raise ValueError("ProviderRequest requires at least one message")

    @classmethod
    def from_prompt(
        cls,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> "ProviderRequest":
        """Build a request whose only message is a user prompt."""
        return cls(
            messages=(Message(role="user", content=prompt),),
            temperature=temperature,
            max_tokens=max_tokens,
        )

    @property
    def total_length(self) -> int:
        return sum(len(m.content) for m in self.messages)


@dataclass(frozen=True)
class ProviderResponse:
    """
    Result of a single gateway query. Produced fresh per call, never mutated.

    Attributes:
        content: Generated answer text
        provider: Backend that produced the answer
        model: Model identifier used for the call
        input_tokens: Prompt tokens (reported, or ceil(chars/4) estimate)
        output_tokens: Completion tokens (reported, or estimate)
        cost_usd: Estimated cost from the static pricing table
        latency_ms: Wall time of the call including retries
        responded_at: UTC completion time
    """

    content: str
    provider: ProviderId
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    latency_ms: int
    responded_at: datetime

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ProviderGateway(Protocol):
    """
    Protocol every backend adapter implements.

    Example:
        >>> gateway = factory.get(ProviderId.OPENAI)
        >>> if gateway.is_available():
        ...     response = await gateway.query(ProviderRequest.from_prompt("Hi"))
    """

    provider_id: ProviderId
    model_name: str

    def is_available(self) -> bool:
        """True iff a non-empty credential is configured."""
        ...

    async def query(self, request: ProviderRequest) -> ProviderResponse:
        """
        Send a chat request with bounded retry.

        Raises:
            ProviderUnavailableError: If no credential is configured
            ProviderAuthenticationError: On 401/403
            ProviderResponseError: On other non-retryable statuses or bad bodies
            httpx.HTTPError: Transient failure after retries are exhausted
        """
        ...

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for text, with the same retry policy."""
        ...


@dataclass
class GatewayFactory:
    """
    Resolves provider identifiers to gateway adapters.

    Each factory caches one adapter per provider; there is no process-wide
    registry, so two factories built from different configs never share
    state. Tests can pre-seed adapters through `gateways`.

    Attributes:
        config: Runtime configuration with resolved API keys
        gateways: Adapter cache keyed by ProviderId

    Example:
        >>> factory = GatewayFactory(runtime_config_from_env())
        >>> factory.get("openai").is_available()
        True
    """

    config: "RuntimeConfig | None" = None
    gateways: dict[ProviderId, ProviderGateway] = field(default_factory=dict)

    def get(self, provider: ProviderId | str) -> ProviderGateway:
        """
        Return the adapter for a provider, building it on first use.

        Raises:
            ValueError: If the provider identifier is unsupported or the
                factory has no configuration for it
        """
        provider_id = ProviderId.coerce(provider)

        gateway = self.gateways.get(provider_id)
        if gateway is None:
            if self.config is None:
                raise ValueError(
                    f"No gateway registered for provider '{provider_id.value}' "
                    "and no configuration to build one"
                )
            gateway = build_gateway(provider_id, self.config)
            self.gateways[provider_id] = gateway

        return gateway


def build_gateway(provider: ProviderId | str, config: "RuntimeConfig") -> ProviderGateway:
    """
    Create the adapter for a provider from runtime configuration.

    Adapters are constructed even without an API key; they then report
    is_available() == False.

    Raises:
        ValueError: If provider is not supported

    Security:
        The API key is passed to the adapter constructor only and never logged.
    """
    provider_id = ProviderId.coerce(provider)
    runtime = config.provider(provider_id.value)

    if provider_id is ProviderId.OPENAI:
        from aeyez.gateway.openai_gateway import OpenAIGateway

        return OpenAIGateway(runtime.settings, runtime.api_key)

    if provider_id is ProviderId.GOOGLE:
        from aeyez.gateway.google_gateway import GoogleGateway

        return GoogleGateway(runtime.settings, runtime.api_key)

    raise ValueError(f"Unsupported provider: '{provider_id.value}'")
