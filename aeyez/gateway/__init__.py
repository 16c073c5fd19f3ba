"""
Provider gateway package for Aeyez.

Uniform query / embed / is_available contract over the supported AI
backends, plus the per-provider rate limiter.
"""

from .models import (
    GatewayFactory,
    Message,
    ProviderGateway,
    ProviderId,
    ProviderRequest,
    ProviderResponse,
    build_gateway,
)
from .rate_limiter import RateLimiter

__all__ = [
    "GatewayFactory",
    "Message",
    "ProviderGateway",
    "ProviderId",
    "ProviderRequest",
    "ProviderResponse",
    "RateLimiter",
    "build_gateway",
]
