"""LLM gateway.

Provider-agnostic entry point for chat requests. Owns the per-config
cache of chat models and composes ChatModelFactory and
ModelDiscoveryEngine.

Usage::

    gateway = LLMGateway()
    gateway.set_config(config.id, config)
    reply = await gateway.send("Hi there", config.id, system_prompt="Be brief")

Operations define no cancellation token or deadline. Wrap calls in
asyncio.timeout() if needed; on timeout the backend request is
abandoned, not aborted.
"""

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    BaseMessage,
    HumanMessage,
    SystemMessage,
    convert_to_messages,
)
from langchain_core.messages.utils import MessageLikeRepresentation
from langchain_core.prompts import ChatPromptTemplate

from ..config import settings
from ..utils.llm import parse_llm_response
from .base import ConfigNotFoundError, LLMRequest, ModelTestResult, ProviderConfig
from .discovery import ModelDiscoveryEngine
from .factory import ChatModelFactory

logger = logging.getLogger(__name__)

BatchRequest = LLMRequest | Mapping[str, Any]


class ModelFactory(Protocol):
    """Protocol for chat model construction - enables dependency injection."""

    def create(self, config: ProviderConfig) -> BaseChatModel:
        """Build a chat model with default parameters."""
        ...

    def create_with_params(self, config: ProviderConfig, params: dict[str, Any]) -> BaseChatModel:
        """Build a chat model with parameter overrides."""
        ...


@dataclass
class _CacheEntry:
    """A registered configuration and the chat model built from it, if any."""

    config: ProviderConfig
    model: BaseChatModel | None = None


def build_messages(message: str, system_prompt: str | None = None) -> list[BaseMessage]:
    """Build a single-turn message sequence with an optional system prompt."""
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    messages.append(HumanMessage(content=message))
    return messages


def _unpack_request(request: BatchRequest) -> tuple[str, str | None]:
    if isinstance(request, LLMRequest):
        return request.message, request.system_prompt
    return request["message"], request.get("system_prompt")


class LLMGateway:
    """Multi-provider chat gateway with per-config model caching.

    Each config id maps to one cache entry holding the configuration and,
    once first used, the chat model built from it. Replacing or clearing
    the configuration drops the model with it, so a model built from
    stale credentials is never served.
    """

    def __init__(
        self,
        factory: ModelFactory | None = None,
        discovery: ModelDiscoveryEngine | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            factory: Chat model factory. Defaults to ChatModelFactory.
            discovery: Model discovery engine. Defaults to a new engine.
        """
        self._factory: ModelFactory = factory or ChatModelFactory()
        self._discovery = discovery or ModelDiscoveryEngine()
        self._entries: dict[str, _CacheEntry] = {}

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def set_config(self, config_id: str, config: ProviderConfig) -> None:
        """Register or replace a configuration, evicting its cached model."""
        self._entries[config_id] = _CacheEntry(config=config)
        logger.debug("Registered config %s (%s/%s)", config_id, config.provider, config.model)

    def clear_cache(self, config_id: str | None = None) -> None:
        """Evict one configuration and its model, or everything when no id is given."""
        if config_id is None:
            self._entries.clear()
            logger.debug("Cleared all cached configs")
        else:
            self._entries.pop(config_id, None)
            logger.debug("Cleared cached config %s", config_id)

    def has_config(self, config_id: str) -> bool:
        """Check whether a configuration is registered."""
        return config_id in self._entries

    def get_config(self, config_id: str) -> ProviderConfig:
        """Get a registered configuration.

        Raises:
            ConfigNotFoundError: If the id was never registered
        """
        entry = self._entries.get(config_id)
        if entry is None:
            raise ConfigNotFoundError(config_id)
        return entry.config

    def _get_model(self, config_id: str) -> BaseChatModel:
        """Get the cached model for a config id, building it on first use."""
        entry = self._entries.get(config_id)
        if entry is None:
            raise ConfigNotFoundError(config_id)
        if entry.model is None:
            # A failed build leaves the entry without a model
            entry.model = self._factory.create(entry.config)
        return entry.model

    # ------------------------------------------------------------------
    # Chat operations
    # ------------------------------------------------------------------

    async def send(self, message: str, config_id: str, system_prompt: str | None = None) -> str:
        """Send a single message using a registered configuration.

        Args:
            message: User message
            config_id: Registered configuration id
            system_prompt: Optional system prompt

        Returns:
            Model response text

        Raises:
            ConfigNotFoundError: If the id was never registered
        """
        model = self._get_model(config_id)
        response = await model.ainvoke(build_messages(message, system_prompt))
        return parse_llm_response(response.content)

    async def send_with_config(
        self,
        message: str,
        config: ProviderConfig,
        system_prompt: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> str:
        """Send a message with a transient configuration, bypassing the cache.

        Args:
            message: User message
            config: Configuration to build a fresh model from
            system_prompt: Optional system prompt
            params: Optional generation parameter overrides

        Returns:
            Model response text
        """
        if params:
            model = self._factory.create_with_params(config, params)
        else:
            model = self._factory.create(config)
        response = await model.ainvoke(build_messages(message, system_prompt))
        return parse_llm_response(response.content)

    async def send_conversation(
        self,
        messages: Sequence[MessageLikeRepresentation],
        config_id: str,
    ) -> str:
        """Send a full message history using a registered configuration.

        Args:
            messages: Ordered history as LangChain messages, (role, content)
                tuples or role/content dicts
            config_id: Registered configuration id

        Returns:
            Model response text
        """
        model = self._get_model(config_id)
        response = await model.ainvoke(convert_to_messages(messages))
        return parse_llm_response(response.content)

    async def send_with_template(
        self,
        template: ChatPromptTemplate,
        variables: dict[str, Any],
        config_id: str,
    ) -> str:
        """Render a prompt template and send it using a registered configuration."""
        chain = template | self._get_model(config_id)
        response = await chain.ainvoke(variables)
        return parse_llm_response(response.content)

    async def stream_message(
        self,
        message: str,
        config_id: str,
        system_prompt: str | None = None,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """Stream a response, reporting each increment as it arrives.

        Args:
            message: User message
            config_id: Registered configuration id
            system_prompt: Optional system prompt
            on_chunk: Called synchronously with every non-empty text increment

        Returns:
            The full response, increments concatenated in arrival order
        """
        model = self._get_model(config_id)
        parts: list[str] = []
        async for chunk in model.astream(build_messages(message, system_prompt)):
            text = parse_llm_response(chunk.content)
            if not text:
                continue
            parts.append(text)
            if on_chunk is not None:
                on_chunk(text)
        return "".join(parts)

    async def batch_messages(
        self,
        requests: Sequence[BatchRequest],
        config_id: str,
    ) -> list[str]:
        """Send several independent requests with one configuration.

        Args:
            requests: LLMRequest values or {"message", "system_prompt"} mappings
            config_id: Registered configuration id

        Returns:
            Responses in the same order as requests
        """
        model = self._get_model(config_id)
        inputs = [build_messages(*_unpack_request(request)) for request in requests]
        if not inputs:
            return []

        results: list[str] = [""] * len(inputs)
        async for index, response in model.abatch_as_completed(inputs):
            results[index] = parse_llm_response(response.content)
        return results

    # ------------------------------------------------------------------
    # Discovery and diagnostics
    # ------------------------------------------------------------------

    async def list_available_models(self, config: ProviderConfig) -> list[str]:
        """List the model ids available for a configuration (not cached)."""
        return await self._discovery.discover(config)

    async def test_model(self, config_id: str) -> ModelTestResult:
        """Probe a registered configuration. Never raises.

        Args:
            config_id: Registered configuration id

        Returns:
            ModelTestResult with timing on success or the error message on failure
        """
        entry = self._entries.get(config_id)
        model_name = entry.config.model if entry else None
        start = time.monotonic()
        try:
            response = await self.send(settings.probe_message, config_id)
        except Exception as e:
            logger.warning("Model test failed for %s: %s", config_id, e)
            return ModelTestResult(success=False, error=str(e) or type(e).__name__, model=model_name)

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info("Model test for %s succeeded in %.0fms", config_id, elapsed_ms)
        return ModelTestResult(
            success=True,
            response_time_ms=elapsed_ms,
            response=response,
            model=model_name,
        )
