"""Tests for the chat service layer."""

import asyncio

import pytest
from conftest import GEMINI_ID, OPENAI_ID, CountingFactory

from deskchat.llm import ConfigNotFoundError, LLMGateway, LLMRequest, LLMResponse, ProviderConfig
from deskchat.llm.discovery import ANTHROPIC_MODELS
from deskchat.services import (
    ChatService,
    ConfigDisabledError,
    InMemoryConfigStore,
    NoConfigAvailableError,
    parse_model_id,
)


@pytest.fixture
def store(openai_config: ProviderConfig, gemini_config: ProviderConfig) -> InMemoryConfigStore:
    """Store holding one OpenAI and one Gemini configuration."""
    return InMemoryConfigStore([openai_config, gemini_config])


@pytest.fixture
def service(store: InMemoryConfigStore, gateway: LLMGateway) -> ChatService:
    return ChatService(store, gateway)


class TestParseModelId:
    """Test model id parsing."""

    def test_plain_id(self) -> None:
        selector = parse_model_id("gpt-4o")
        assert selector.config_id == "gpt-4o"
        assert selector.model is None
        assert selector.is_uuid is False

    def test_bare_uuid(self) -> None:
        selector = parse_model_id(OPENAI_ID)
        assert selector.config_id == OPENAI_ID
        assert selector.model is None
        assert selector.is_uuid is True

    def test_uuid_with_model(self) -> None:
        selector = parse_model_id(f"{OPENAI_ID}-gpt-4o-mini")
        assert selector.config_id == OPENAI_ID
        assert selector.model == "gpt-4o-mini"

    def test_uuid_with_trailing_dash(self) -> None:
        selector = parse_model_id(f"{OPENAI_ID}-")
        assert selector.config_id == OPENAI_ID
        assert selector.model is None

    def test_uppercase_uuid(self) -> None:
        assert parse_model_id(OPENAI_ID.upper()).is_uuid is True


class TestSendMessage:
    """Test model id resolution and sending."""

    def test_send_by_config_id(self, service, factory) -> None:
        response = asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))

        assert response == LLMResponse(content="echo: Hi", model="gpt-4o")

    def test_cached_across_calls(self, service, factory) -> None:
        asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))
        asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))

        assert len(factory.created) == 1

    def test_store_update_rebuilds_model(self, service, store, factory, openai_config) -> None:
        asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))
        store.save(openai_config.model_copy(update={"api_key": "sk-new"}))
        asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))

        assert [c.api_key for c in factory.created] == ["sk-test", "sk-new"]

    def test_composite_id_selects_model(self, service, factory) -> None:
        """A "<uuid>-<model>" id targets another model of the same config."""
        response = asyncio.run(
            service.send_message(LLMRequest(message="Hi"), f"{OPENAI_ID}-gpt-4o-mini")
        )

        assert response.model == "gpt-4o-mini"
        assert factory.created[0].model == "gpt-4o-mini"
        assert factory.created[0].api_key == "sk-test"
        assert not service.gateway.has_config(OPENAI_ID)

    def test_composite_id_with_same_model_is_cached(self, service, factory) -> None:
        asyncio.run(service.send_message(LLMRequest(message="Hi"), f"{OPENAI_ID}-gpt-4o"))

        assert service.gateway.has_config(OPENAI_ID)

    def test_model_name_fallback(self, service) -> None:
        response = asyncio.run(service.send_message(LLMRequest(message="Hi"), "gemini-2.5-pro"))

        assert response.model == "gemini-2.5-pro"
        assert service.gateway.has_config(GEMINI_ID)

    def test_unknown_uuid_not_resolved_by_name(self, service) -> None:
        missing = "00000000-0000-0000-0000-000000000000"
        with pytest.raises(ConfigNotFoundError) as exc_info:
            asyncio.run(service.send_message(LLMRequest(message="Hi"), missing))

        assert exc_info.value.config_id == missing

    def test_unknown_id(self, service) -> None:
        with pytest.raises(ConfigNotFoundError):
            asyncio.run(service.send_message(LLMRequest(message="Hi"), "no-such-model"))

    def test_disabled_config(self, service, store, openai_config, factory) -> None:
        store.save(openai_config.model_copy(update={"is_enabled": False}))

        with pytest.raises(ConfigDisabledError, match="Work OpenAI"):
            asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))

        assert factory.created == []

    def test_request_params_bypass_cache(self, service, factory) -> None:
        request = LLMRequest(message="Hi", temperature=0.2, max_tokens=64)

        asyncio.run(service.send_message(request, OPENAI_ID))

        assert factory.params == [{"temperature": 0.2, "max_tokens": 64}]
        assert not service.gateway.has_config(OPENAI_ID)

    def test_send_with_default_uses_highest_priority(self, service, factory) -> None:
        response = asyncio.run(service.send_message_with_default(LLMRequest(message="Hi")))

        assert response.model == "gpt-4o"
        assert factory.created[0].id == OPENAI_ID

    def test_send_with_default_without_configs(self, gateway) -> None:
        service = ChatService(InMemoryConfigStore(), gateway)

        with pytest.raises(NoConfigAvailableError):
            asyncio.run(service.send_message_with_default(LLMRequest(message="Hi")))


class TestStreamAndBatch:
    """Test streaming and batching through the service."""

    def test_stream(self, store) -> None:
        service = ChatService(store, LLMGateway(factory=CountingFactory(chunks=["O", "K"])))
        received: list[str] = []

        full = asyncio.run(
            service.stream_message(LLMRequest(message="Hi"), OPENAI_ID, received.append)
        )

        assert full == "OK"
        assert received == ["O", "K"]

    def test_stream_disabled(self, service, store, gemini_config) -> None:
        store.save(gemini_config.model_copy(update={"is_enabled": False}))

        with pytest.raises(ConfigDisabledError):
            asyncio.run(service.stream_message(LLMRequest(message="Hi"), GEMINI_ID))

    def test_batch(self, service) -> None:
        results = asyncio.run(
            service.batch_messages([LLMRequest(message="one"), {"message": "two"}], OPENAI_ID)
        )

        assert results == ["echo: one", "echo: two"]

    def test_batch_unknown_config(self, service) -> None:
        with pytest.raises(ConfigNotFoundError):
            asyncio.run(service.batch_messages([{"message": "one"}], "missing"))


class TestConnectionTests:
    """Test provider probes."""

    def test_test_provider(self, service) -> None:
        result = asyncio.run(service.test_provider(OPENAI_ID))

        assert result.success is True
        assert service.gateway.has_config(OPENAI_ID)

    def test_test_provider_unknown(self, service) -> None:
        with pytest.raises(ConfigNotFoundError):
            asyncio.run(service.test_provider("missing"))

    def test_test_config_success(self, service, openai_config, factory) -> None:
        result = asyncio.run(service.test_config(openai_config))

        assert result.success is True
        assert result.response.startswith("echo: Hello!")
        assert result.model == "gpt-4o"
        assert not service.gateway.has_config(openai_config.id)

    def test_test_config_failure(self, store, openai_config) -> None:
        service = ChatService(store, LLMGateway(factory=CountingFactory(error="quota exceeded")))

        result = asyncio.run(service.test_config(openai_config))

        assert result.success is False
        assert result.error == "quota exceeded"

    def test_test_all_enabled_configs(self, service, store, gemini_config) -> None:
        store.save(gemini_config.model_copy(update={"is_enabled": False}))

        reports = asyncio.run(service.test_all_enabled_configs())

        assert [r.config_id for r in reports] == [OPENAI_ID]
        assert reports[0].name == "Work OpenAI"
        assert reports[0].result.success is True


class TestConfigQueries:
    """Test default selection, stats and discovery."""

    def test_default_config(self, service) -> None:
        assert service.get_default_config().id == OPENAI_ID

    def test_default_config_skips_disabled(self, service, store, openai_config) -> None:
        store.save(openai_config.model_copy(update={"is_enabled": False}))

        assert service.get_default_config().id == GEMINI_ID

    def test_default_config_none(self, gateway) -> None:
        assert ChatService(InMemoryConfigStore(), gateway).get_default_config() is None

    def test_provider_stats(self, service, store, gemini_config) -> None:
        store.save(gemini_config.model_copy(update={"id": "second-gemini", "is_enabled": False}))

        stats = service.get_provider_stats()

        assert stats.total == 3
        assert stats.enabled == 2
        assert stats.by_provider == {"openai": 1, "gemini": 2}

    def test_refresh_provider_models(self, store, gateway) -> None:
        store.save(ProviderConfig(id="claude-cfg", provider="claude", model="claude-3-opus-20240229"))
        service = ChatService(store, gateway)

        models = asyncio.run(service.refresh_provider_models("claude-cfg"))

        assert models == list(ANTHROPIC_MODELS)

    def test_refresh_unknown(self, service) -> None:
        with pytest.raises(ConfigNotFoundError):
            asyncio.run(service.refresh_provider_models("missing"))

    def test_clear_cache(self, service) -> None:
        asyncio.run(service.send_message(LLMRequest(message="Hi"), OPENAI_ID))
        service.clear_cache(OPENAI_ID)

        assert not service.gateway.has_config(OPENAI_ID)


class TestInMemoryConfigStore:
    """Test the dict-backed store."""

    def test_save_get_delete(self, openai_config) -> None:
        store = InMemoryConfigStore()
        store.save(openai_config)

        assert store.get(OPENAI_ID) == openai_config
        assert store.list_configs() == [openai_config]

        store.delete(OPENAI_ID)
        store.delete(OPENAI_ID)
        assert store.get(OPENAI_ID) is None
