"""Chat service.

Application-level facade over the LLM gateway. Resolves model ids
against the configuration store, enforces enablement and wraps
gateway results in LLMResponse values.
"""

import logging
import re
import time
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..config import settings
from ..llm.base import (
    ConfigNotFoundError,
    LLMRequest,
    LLMResponse,
    ModelTestResult,
    ProviderConfig,
)
from ..llm.gateway import BatchRequest, LLMGateway
from .config_store import ConfigStore
from .exceptions import ConfigDisabledError, NoConfigAvailableError

logger = logging.getLogger(__name__)

# Config ids are UUIDs; "<uuid>-<model>" selects a specific model of that config
UUID_PREFIX_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ModelSelector:
    """A parsed model id."""

    config_id: str
    model: str | None = None
    is_uuid: bool = False


def parse_model_id(model_id: str) -> ModelSelector:
    """Split a model id into config id and optional model name.

    Accepts a bare config id, a bare UUID, or "<uuid>-<model name>".
    """
    match = UUID_PREFIX_PATTERN.match(model_id)
    if not match:
        return ModelSelector(config_id=model_id)

    uuid = match.group(0)
    remaining = model_id[len(uuid) :]
    if remaining.startswith("-") and len(remaining) > 1:
        return ModelSelector(config_id=uuid, model=remaining[1:], is_uuid=True)
    return ModelSelector(config_id=uuid, is_uuid=True)


@dataclass
class ConfigTestReport:
    """Test result for one stored configuration."""

    config_id: str
    name: str
    result: ModelTestResult


@dataclass
class ProviderStats:
    """Configuration counts."""

    total: int
    enabled: int
    by_provider: dict[str, int] = field(default_factory=dict)


class ChatService:
    """Service for sending chat requests against stored configurations.

    Responsibilities:
    - Resolve plain and composite model ids to configurations
    - Reject disabled configurations
    - Keep the gateway cache in sync with the store
    - Connection tests, default selection and statistics
    """

    def __init__(self, store: ConfigStore, gateway: LLMGateway | None = None) -> None:
        self._store = store
        self._gateway = gateway or LLMGateway()

    @property
    def gateway(self) -> LLMGateway:
        """The underlying gateway."""
        return self._gateway

    def _register(self, config: ProviderConfig) -> None:
        """Register a config with the gateway unless it is already current.

        Re-registering an unchanged config would evict its cached model.
        """
        if not self._gateway.has_config(config.id) or self._gateway.get_config(config.id) != config:
            self._gateway.set_config(config.id, config)

    def _find_config_for_model(self, model: str) -> ProviderConfig | None:
        """Find an enabled configuration whose model matches a model name."""
        return next(
            (c for c in self._store.list_configs() if c.is_enabled and c.model == model),
            None,
        )

    def _require_enabled(self, config_id: str) -> ProviderConfig:
        config = self._store.get(config_id)
        if config is None:
            raise ConfigNotFoundError(config_id)
        if not config.is_enabled:
            raise ConfigDisabledError(config.display_name)
        return config

    async def send_message(self, request: LLMRequest, model_id: str) -> LLMResponse:
        """Send a message to the configuration a model id points at.

        Args:
            request: Chat request
            model_id: Config id, or "<config uuid>-<model name>"

        Returns:
            LLMResponse

        Raises:
            ConfigNotFoundError: If no configuration matches
            ConfigDisabledError: If the configuration is disabled
        """
        selector = parse_model_id(model_id)
        logger.debug(
            "Resolved model id %s -> config %s, model %s",
            model_id,
            selector.config_id,
            selector.model,
        )

        config = self._store.get(selector.config_id)
        specific_model = selector.model
        if config is None and not selector.is_uuid:
            # Older clients stored the model name instead of the config id
            config = self._find_config_for_model(selector.config_id)
            if config is not None:
                logger.info(
                    "Resolved model name %s to config %s (%s)",
                    selector.config_id,
                    config.display_name,
                    config.id,
                )

        if config is None:
            raise ConfigNotFoundError(selector.config_id)
        if not config.is_enabled:
            raise ConfigDisabledError(config.display_name)

        if specific_model and specific_model != config.model:
            return await self.send_message_with_config(request, config.with_model(specific_model))
        if request.param_overrides():
            return await self.send_message_with_config(request, config)

        self._register(config)
        content = await self._gateway.send(request.message, config.id, request.system_prompt)
        return LLMResponse(content=content, model=config.model)

    async def send_message_with_config(
        self,
        request: LLMRequest,
        config: ProviderConfig,
    ) -> LLMResponse:
        """Send a message with a transient configuration (uncached)."""
        content = await self._gateway.send_with_config(
            request.message,
            config,
            request.system_prompt,
            request.param_overrides() or None,
        )
        return LLMResponse(content=content, model=config.model)

    async def send_message_with_default(self, request: LLMRequest) -> LLMResponse:
        """Send a message with the highest-priority enabled configuration.

        Raises:
            NoConfigAvailableError: If no configuration is enabled
        """
        config = self.get_default_config()
        if config is None:
            raise NoConfigAvailableError(
                "No model configuration available, configure at least one LLM provider"
            )
        return await self.send_message_with_config(request, config)

    async def stream_message(
        self,
        request: LLMRequest,
        config_id: str,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """Stream a response from a stored configuration."""
        config = self._require_enabled(config_id)
        self._register(config)
        return await self._gateway.stream_message(
            request.message,
            config.id,
            request.system_prompt,
            on_chunk,
        )

    async def batch_messages(self, requests: Sequence[BatchRequest], config_id: str) -> list[str]:
        """Send several requests to a stored configuration, preserving order."""
        config = self._require_enabled(config_id)
        self._register(config)
        return await self._gateway.batch_messages(requests, config.id)

    async def test_provider(self, config_id: str) -> ModelTestResult:
        """Probe a stored configuration through the gateway cache.

        Raises:
            ConfigNotFoundError: If the configuration does not exist
        """
        config = self._store.get(config_id)
        if config is None:
            raise ConfigNotFoundError(config_id)
        self._register(config)
        return await self._gateway.test_model(config.id)

    async def test_config(self, config: ProviderConfig) -> ModelTestResult:
        """Probe a configuration without touching the cache. Never raises."""
        request = LLMRequest(message=settings.config_probe_message)
        try:
            start = time.monotonic()
            response = await self.send_message_with_config(request, config)
            elapsed = (time.monotonic() - start) * 1000
        except Exception as e:
            logger.warning("Connection test failed for %s: %s", config.display_name, e)
            return ModelTestResult(success=False, error=str(e) or type(e).__name__, model=config.model)

        return ModelTestResult(
            success=True,
            response_time_ms=elapsed,
            response=response.content,
            model=config.model,
        )

    async def test_all_enabled_configs(self) -> list[ConfigTestReport]:
        """Probe every enabled configuration, one after another."""
        reports = []
        for config in self._store.list_configs():
            if not config.is_enabled:
                continue
            result = await self.test_config(config)
            reports.append(ConfigTestReport(config.id, config.display_name, result))
        return reports

    def get_default_config(self) -> ProviderConfig | None:
        """Get the enabled configuration with the highest priority."""
        enabled = [c for c in self._store.list_configs() if c.is_enabled]
        if not enabled:
            return None
        return max(enabled, key=lambda c: c.priority)

    async def refresh_provider_models(self, config_id: str) -> list[str]:
        """Discover the current model list for a stored configuration."""
        config = self._store.get(config_id)
        if config is None:
            raise ConfigNotFoundError(config_id)
        return await self._gateway.list_available_models(config)

    def get_provider_stats(self) -> ProviderStats:
        """Count configurations, in total, enabled and per provider."""
        configs = self._store.list_configs()
        return ProviderStats(
            total=len(configs),
            enabled=sum(1 for c in configs if c.is_enabled),
            by_provider=dict(Counter(c.provider for c in configs)),
        )

    def clear_cache(self, config_id: str | None = None) -> None:
        """Evict cached models from the gateway."""
        self._gateway.clear_cache(config_id)
