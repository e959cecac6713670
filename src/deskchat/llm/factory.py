"""Chat model factory.

Builds ready-to-invoke LangChain chat models from a ProviderConfig.
Construction is pure: no caching, no network I/O.
"""

import logging
import os
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from langchain.chat_models import init_chat_model
from langchain_core.language_models.chat_models import BaseChatModel

from ..config import settings
from .base import ProviderConfig, ProviderKind, unhandled_provider

logger = logging.getLogger(__name__)

# Proxy variables honored for the Google Generative AI client
PROXY_ENV_VARS = ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy")


def _resolve_proxy() -> str | None:
    """Return the first proxy URL configured in the process environment."""
    for var in PROXY_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return value
    return None


def _mask_proxy(proxy_url: str) -> str:
    """Hide credentials embedded in a proxy URL."""
    parts = urlsplit(proxy_url)
    if parts.password is None:
        return proxy_url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"{parts.username}:***@{host}"))


class ChatModelFactory:
    """Factory for creating LangChain chat models.

    Dispatches on ProviderKind. Anything that is not OpenAI, Anthropic
    or Google is built as an OpenAI-compatible client pointed at the
    configured base URL.
    """

    @staticmethod
    def default_model_params(kind: ProviderKind) -> dict[str, Any]:
        """Get the default generation parameters for a provider kind."""
        match kind:
            case ProviderKind.GOOGLE:
                return {
                    "temperature": settings.default_temperature,
                    "max_output_tokens": settings.default_max_tokens,
                }
            case ProviderKind.OPENAI | ProviderKind.ANTHROPIC | ProviderKind.CUSTOM:
                return {
                    "temperature": settings.default_temperature,
                    "max_tokens": settings.default_max_tokens,
                }
            case _:
                unhandled_provider(kind)

    @classmethod
    def create(cls, config: ProviderConfig) -> BaseChatModel:
        """Create a chat model with default generation parameters.

        Args:
            config: Target model configuration

        Returns:
            Configured chat model bound to the config's credentials
        """
        return cls.create_with_params(config, {})

    @classmethod
    def create_with_params(
        cls,
        config: ProviderConfig,
        params: dict[str, Any],
    ) -> BaseChatModel:
        """Create a chat model, merging parameter overrides over the defaults.

        Unknown keys in params are passed through to the backend client.

        Args:
            config: Target model configuration
            params: Generation parameter overrides

        Returns:
            Configured chat model
        """
        kind = config.kind
        kwargs = cls.default_model_params(kind) | params
        logger.info(
            "Creating chat model - provider: %s (%s), model: %s",
            config.provider,
            kind.value,
            config.model,
        )

        match kind:
            case ProviderKind.OPENAI:
                return init_chat_model(
                    model=config.model,
                    model_provider="openai",
                    api_key=config.api_key,
                    base_url=config.resolved_base_url(),
                    **kwargs,
                )
            case ProviderKind.ANTHROPIC:
                if config.base_url:
                    kwargs.setdefault("base_url", config.base_url)
                return init_chat_model(
                    model=config.model,
                    model_provider="anthropic",
                    api_key=config.api_key,
                    **kwargs,
                )
            case ProviderKind.GOOGLE:
                return cls._create_google(config, kwargs)
            case ProviderKind.CUSTOM:
                return init_chat_model(
                    model=config.model,
                    model_provider="openai",
                    api_key=config.api_key,
                    base_url=config.base_url or None,
                    **kwargs,
                )
            case _:
                unhandled_provider(kind)

    @staticmethod
    def _create_google(config: ProviderConfig, kwargs: dict[str, Any]) -> BaseChatModel:
        """Build the Google Generative AI client, wiring proxy and endpoint."""
        proxy_url = _resolve_proxy()
        if proxy_url:
            # Forwarded to the google-genai HTTP client
            logger.info("Using proxy for Gemini API: %s", _mask_proxy(proxy_url))
            kwargs.setdefault("client_args", {"proxy": proxy_url})

        if config.base_url and config.base_url.rstrip("/") != settings.gemini_base_url:
            kwargs.setdefault("base_url", config.base_url)

        return init_chat_model(
            model=config.model,
            model_provider="google_genai",
            google_api_key=config.api_key,
            **kwargs,
        )
