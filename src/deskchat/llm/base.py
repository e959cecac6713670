"""Core LLM gateway types.

Defines the provider configuration value, the closed set of provider
kinds, the request/response shapes and the error taxonomy shared by
the factory, discovery engine and gateway.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Never

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import settings


class ProviderKind(str, Enum):
    """Backend protocol families.

    Every provider string maps onto exactly one kind. Strings that are
    not a known alias are treated as CUSTOM, since most third-party
    APIs speak the OpenAI protocol.
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, provider: str) -> "ProviderKind":
        """Resolve a provider string (case-insensitive) to its kind."""
        return _PROVIDER_ALIASES.get(provider.strip().lower(), cls.CUSTOM)

    @property
    def default_base_url(self) -> str:
        """Endpoint used when a configuration does not override it."""
        match self:
            case ProviderKind.OPENAI:
                return settings.openai_base_url
            case ProviderKind.ANTHROPIC:
                return settings.anthropic_base_url
            case ProviderKind.GOOGLE:
                return settings.gemini_base_url
            case ProviderKind.CUSTOM:
                return ""
            case _:
                unhandled_provider(self)


_PROVIDER_ALIASES: dict[str, ProviderKind] = {
    "openai": ProviderKind.OPENAI,
    "claude": ProviderKind.ANTHROPIC,
    "anthropic": ProviderKind.ANTHROPIC,
    "gemini": ProviderKind.GOOGLE,
    "google": ProviderKind.GOOGLE,
    "custom": ProviderKind.CUSTOM,
}


class ProviderConfig(BaseModel):
    """Immutable description of one target model endpoint.

    Produced by the external configuration store and passed by value
    into the gateway, which never mutates or persists it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Stable identity used as cache key")
    provider: str = Field(min_length=1, description="Provider name, e.g. openai or claude")
    model: str = Field(min_length=1, description="Model identifier")
    api_key: str = Field(default="", repr=False)
    base_url: str = ""
    name: str = ""
    priority: int = 0
    is_enabled: bool = True

    @field_validator("provider", "model")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject whitespace-only provider and model values."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @property
    def kind(self) -> ProviderKind:
        """Backend protocol family for this configuration."""
        return ProviderKind.parse(self.provider)

    @property
    def display_name(self) -> str:
        """Human-readable label, falling back to the id."""
        return self.name or self.id

    def resolved_base_url(self) -> str:
        """Configured base URL or the provider kind's default."""
        return self.base_url or self.kind.default_base_url

    def with_model(self, model: str) -> "ProviderConfig":
        """Return a copy of this configuration pointed at another model."""
        return self.model_copy(update={"model": model})


@dataclass
class LLMRequest:
    """Provider-agnostic chat request."""

    message: str
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None

    def param_overrides(self) -> dict[str, Any]:
        """Generation parameters explicitly set on this request."""
        params: dict[str, Any] = {}
        if self.temperature is not None:
            params["temperature"] = self.temperature
        if self.max_tokens is not None:
            params["max_tokens"] = self.max_tokens
        return params


@dataclass
class LLMResponse:
    """Reply text and the model that produced it."""

    content: str
    model: str = ""


@dataclass
class ModelTestResult:
    """Outcome of a connectivity probe against a configuration."""

    success: bool
    error: str | None = None
    response_time_ms: float | None = None
    response: str | None = None
    model: str | None = None


class LLMError(Exception):
    """Base exception for LLM gateway errors."""

    pass


class ConfigNotFoundError(LLMError):
    """Raised when a configuration id has not been registered."""

    def __init__(self, config_id: str) -> None:
        super().__init__(f"Model configuration not found: {config_id}")
        self.config_id = config_id


class UnsupportedProviderError(LLMError):
    """Raised when no strategy exists for a provider."""

    pass


class DiscoveryError(LLMError):
    """Raised when model discovery fails for a hard-fail provider."""

    pass


class DiscoveryHttpError(DiscoveryError):
    """Raised when a discovery endpoint answers with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        super().__init__(f"{provider} model discovery failed ({status_code}): {body}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class EmptyDiscoveryResult(DiscoveryError):
    """Raised when a discovery response parses to zero usable models."""

    pass


def unhandled_provider(kind: Never) -> Never:
    """Exhaustiveness guard for matches over ProviderKind."""
    raise UnsupportedProviderError(f"Unsupported provider: {kind!r}")
