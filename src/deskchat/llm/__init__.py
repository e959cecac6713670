"""Multi-provider LLM gateway.

Provides a provider-agnostic chat interface over OpenAI, Anthropic,
Google Generative AI and OpenAI-compatible custom endpoints.
"""

from .base import (
    ConfigNotFoundError,
    DiscoveryError,
    DiscoveryHttpError,
    EmptyDiscoveryResult,
    LLMError,
    LLMRequest,
    LLMResponse,
    ModelTestResult,
    ProviderConfig,
    ProviderKind,
    UnsupportedProviderError,
)
from .discovery import ModelDiscoveryEngine
from .factory import ChatModelFactory
from .gateway import LLMGateway

__all__ = [
    "ChatModelFactory",
    "ConfigNotFoundError",
    "DiscoveryError",
    "DiscoveryHttpError",
    "EmptyDiscoveryResult",
    "LLMError",
    "LLMGateway",
    "LLMRequest",
    "LLMResponse",
    "ModelDiscoveryEngine",
    "ModelTestResult",
    "ProviderConfig",
    "ProviderKind",
    "UnsupportedProviderError",
]
