"""Model discovery.

Retrieves the list of usable chat model identifiers for a provider
configuration. Each provider kind has its own strategy:

- Google: queries the Generative Language API, then filters and ranks.
  Failures are raised: they usually mean a credential or permission
  problem the user must see.
- OpenAI: queries /models and filters to chat families. Falls back to a
  known-good static list on any failure.
- Anthropic: no discovery endpoint, always a static list.
- Custom: queries an OpenAI-compatible /models endpoint. Falls back to a
  curated cross-vendor static list on any failure.
"""

import logging
from typing import Any

import httpx

from ..config import settings
from ..utils.logging import mask_secret
from .base import (
    DiscoveryError,
    DiscoveryHttpError,
    EmptyDiscoveryResult,
    ProviderConfig,
    ProviderKind,
    unhandled_provider,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODELS: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4-turbo",
    "gpt-4",
    "gpt-3.5-turbo",
    "o1-preview",
    "o1-mini",
)

ANTHROPIC_MODELS: tuple[str, ...] = (
    "claude-3-5-sonnet-20241022",
    "claude-3-5-haiku-20241022",
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
)

DEFAULT_CUSTOM_MODELS: tuple[str, ...] = (
    # Moonshot AI
    "kimi-k2-0711-preview",
    "moonshot-v1-8k",
    "moonshot-v1-32k",
    "moonshot-v1-128k",
    # Generic OpenAI-compatible names
    "gpt-3.5-turbo",
    "gpt-4",
    "gpt-4-turbo",
    "gpt-4o",
    "gpt-4o-mini",
    # Other common third-party models
    "deepseek-chat",
    "deepseek-coder",
    "qwen-turbo",
    "qwen-plus",
    "chatglm-6b",
    "chatglm2-6b",
    "llama-2-7b-chat",
    "llama-2-13b-chat",
    "mistral-7b-instruct",
    "custom-model",
)

GEMINI_MODEL_PREFIX = "models/"
GEMINI_FAMILY_MARKERS = ("gemini", "bison", "chat-bison")
GEMINI_CHAT_MARKERS = ("chat", "pro", "flash", "gemini")
GEMINI_EXCLUDED_MARKERS = ("embedding", "aqa", "text-bison", "imagen")

# Checked in order, first match wins
GEMINI_VERSION_SCORES: tuple[tuple[str, int], ...] = (
    ("2.5", 250),
    ("2.0", 200),
    ("1.5", 150),
    ("1.0", 100),
)
GEMINI_TYPE_SCORES: tuple[tuple[str, int], ...] = (
    ("pro", 30),
    ("flash", 20),
)

OPENAI_EXCLUDED_MARKERS = (
    "text-embedding",
    "tts-",
    "whisper",
    "dall-e",
    "davinci-002",
    "text-ada",
    "transcribe",
    "image-1",
)
OPENAI_CHAT_MARKERS = (
    "gpt",
    "o1",
    "o3",
    "o4",
    "chatgpt",
    "claude",
    "gemini",
    "deepseek",
    "grok",
    "qwen",
    "kimi",
)


def _score(name: str, table: tuple[tuple[str, int], ...], default: int) -> int:
    return next((score for marker, score in table if marker in name), default)


def gemini_rank_score(name: str) -> int:
    """Rank score for a Gemini model: newer versions first, pro before flash."""
    lowered = name.lower()
    return _score(lowered, GEMINI_VERSION_SCORES, 50) + _score(lowered, GEMINI_TYPE_SCORES, 10)


def _is_gemini_chat_model(name: str, methods: list[Any]) -> bool:
    lowered = name.lower()
    is_family = any(marker in lowered for marker in GEMINI_FAMILY_MARKERS)
    # Deliberately permissive: anything named gemini counts as chat-capable
    is_chat = "generateContent" in methods or any(
        marker in lowered for marker in GEMINI_CHAT_MARKERS
    )
    is_excluded = any(marker in lowered for marker in GEMINI_EXCLUDED_MARKERS)
    return is_family and is_chat and not is_excluded


def parse_gemini_models(data: Any) -> list[str]:
    """Parse a Generative Language API models response.

    Args:
        data: Decoded JSON body, expected shape {"models": [{"name": ...}]}

    Returns:
        Chat model names without the "models/" prefix, best first
    """
    entries = data.get("models") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return []

    seen: set[str] = set()
    candidates: list[str] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        raw_name = entry.get("name") or entry.get("id")
        if not isinstance(raw_name, str) or not raw_name.startswith(GEMINI_MODEL_PREFIX):
            logger.debug("Skipping Gemini entry without models/ prefix: %r", raw_name)
            continue
        name = raw_name.removeprefix(GEMINI_MODEL_PREFIX)
        if not name or name in seen:
            continue
        methods = entry.get("supportedGenerationMethods") or []
        if _is_gemini_chat_model(name, methods):
            seen.add(name)
            candidates.append(name)
        else:
            logger.debug("Filtered out Gemini model: %s", name)

    # sorted() is stable, so ties keep their filtering order
    return sorted(candidates, key=gemini_rank_score, reverse=True)


def _model_ids(data: Any) -> list[str]:
    entries = data.get("data") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return []
    return [
        entry["id"]
        for entry in entries
        if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]
    ]


def parse_openai_models(data: Any) -> list[str]:
    """Parse an OpenAI /models response down to chat model ids, sorted."""
    ids = {
        model_id
        for model_id in _model_ids(data)
        if not any(marker in model_id for marker in OPENAI_EXCLUDED_MARKERS)
        and any(marker in model_id for marker in OPENAI_CHAT_MARKERS)
    }
    return sorted(ids)


def parse_custom_models(data: Any) -> list[str]:
    """Parse an OpenAI-compatible /models response, keeping every id, sorted."""
    return sorted(set(_model_ids(data)))


class ModelDiscoveryEngine:
    """Discovers available model ids per provider.

    Results are never cached here; callers that want caching keep
    their own.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Shared HTTP client. A short-lived client is opened
                per request when omitted.
            timeout: Request timeout in seconds. Defaults to config.
        """
        self._client = client
        self._timeout = timeout if timeout is not None else settings.discovery_timeout

    async def discover(self, config: ProviderConfig) -> list[str]:
        """Get the available model ids for a configuration.

        Args:
            config: Provider configuration (credentials and base URL)

        Returns:
            Ordered, deduplicated, non-empty list of model ids

        Raises:
            DiscoveryHttpError: Google endpoint answered non-2xx
            EmptyDiscoveryResult: Google response had no usable models
            DiscoveryError: Google endpoint unreachable or malformed
        """
        kind = config.kind
        match kind:
            case ProviderKind.GOOGLE:
                return await self._discover_google(config)
            case ProviderKind.OPENAI:
                return await self._discover_openai(config)
            case ProviderKind.ANTHROPIC:
                return list(ANTHROPIC_MODELS)
            case ProviderKind.CUSTOM:
                return await self._discover_custom(config)
            case _:
                unhandled_provider(kind)

    async def _get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=headers, params=params)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, headers=headers, params=params)

    async def _discover_google(self, config: ProviderConfig) -> list[str]:
        base_url = config.resolved_base_url().rstrip("/")
        url = f"{base_url}/v1beta/models"
        logger.info("Fetching Gemini model list: %s?key=***", url)

        try:
            response = await self._get(url, params={"key": config.api_key})
        except httpx.HTTPError as e:
            message = mask_secret(str(e), config.api_key)
            raise DiscoveryError(f"Gemini model discovery failed: {message}") from e

        if not response.is_success:
            body = mask_secret(response.text, config.api_key)[: settings.discovery_error_excerpt]
            logger.error("Gemini model discovery failed (%d): %s", response.status_code, body)
            raise DiscoveryHttpError("Gemini", response.status_code, body)

        try:
            data = response.json()
        except ValueError as e:
            raise DiscoveryError("Gemini model discovery returned invalid JSON") from e

        models = parse_gemini_models(data)
        if not models:
            logger.error("Gemini model list parsed to zero chat models")
            raise EmptyDiscoveryResult(
                "Gemini API returned data but no chat models survived parsing; "
                "the API format may have changed"
            )

        logger.info("Discovered %d Gemini models", len(models))
        return models

    async def _discover_openai(self, config: ProviderConfig) -> list[str]:
        base_url = config.resolved_base_url().rstrip("/")
        try:
            response = await self._get(
                f"{base_url}/models",
                headers={"Authorization": f"Bearer {config.api_key}"},
            )
            if not response.is_success:
                logger.warning(
                    "OpenAI model discovery failed (%d), using default list",
                    response.status_code,
                )
                return list(DEFAULT_OPENAI_MODELS)
            models = parse_openai_models(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("OpenAI model discovery error, using default list: %s", e)
            return list(DEFAULT_OPENAI_MODELS)

        if not models:
            logger.warning("OpenAI model discovery returned no chat models, using default list")
            return list(DEFAULT_OPENAI_MODELS)

        logger.info("Discovered %d OpenAI models", len(models))
        return models

    async def _discover_custom(self, config: ProviderConfig) -> list[str]:
        base_url = config.base_url.rstrip("/")
        if not base_url:
            logger.warning("Custom provider %s has no base URL, using default list", config.id)
            return list(DEFAULT_CUSTOM_MODELS)

        models_url = f"{base_url}/models"
        logger.info("Fetching custom provider model list: %s", models_url)
        try:
            response = await self._get(
                models_url,
                headers={
                    "Authorization": f"Bearer {config.api_key}",
                    "Content-Type": "application/json",
                },
            )
            if not response.is_success:
                logger.warning(
                    "Custom provider model discovery failed: %d %s",
                    response.status_code,
                    response.reason_phrase,
                )
                return list(DEFAULT_CUSTOM_MODELS)
            models = parse_custom_models(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Custom provider model discovery error, using default list: %s", e)
            return list(DEFAULT_CUSTOM_MODELS)

        if not models:
            logger.warning("Custom provider returned no models, using default list")
            return list(DEFAULT_CUSTOM_MODELS)

        logger.info("Discovered %d custom provider models", len(models))
        return models
