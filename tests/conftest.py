"""Shared test fixtures for deskchat."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import Field

from deskchat.llm import LLMGateway, ProviderConfig

OPENAI_ID = "3f2b8c1e-9a4d-4e7f-8b6a-1c2d3e4f5a6b"
GEMINI_ID = "7c1d2e3f-4a5b-4c6d-8e9f-0a1b2c3d4e5f"


class ScriptedChatModel(BaseChatModel):
    """Offline chat model with scripted replies, delays and stream chunks.

    Replies default to "echo: <last message>". Every call records the
    messages it received.
    """

    replies: dict[str, Any] = Field(default_factory=dict)
    delays: dict[str, float] = Field(default_factory=dict)
    chunks: list[str] = Field(default_factory=list)
    error: str | None = None
    calls: list[list[BaseMessage]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    @property
    def prompts(self) -> list[str]:
        """Last message of every call, in completion order."""
        return [str(messages[-1].content) for messages in self.calls]

    def _reply(self, messages: list[BaseMessage]) -> ChatResult:
        if self.error is not None:
            raise RuntimeError(self.error)
        self.calls.append(list(messages))
        prompt = str(messages[-1].content)
        content = self.replies.get(prompt, f"echo: {prompt}")
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=content))])

    def _generate(self, messages: list[BaseMessage], stop=None, run_manager=None, **kwargs: Any):
        return self._reply(messages)

    async def _agenerate(
        self, messages: list[BaseMessage], stop=None, run_manager=None, **kwargs: Any
    ):
        await asyncio.sleep(self.delays.get(str(messages[-1].content), 0))
        return self._reply(messages)

    async def _astream(
        self, messages: list[BaseMessage], stop=None, run_manager=None, **kwargs: Any
    ) -> AsyncIterator[ChatGenerationChunk]:
        if self.error is not None:
            raise RuntimeError(self.error)
        self.calls.append(list(messages))
        for piece in self.chunks:
            yield ChatGenerationChunk(message=AIMessageChunk(content=piece))


class CountingFactory:
    """Model factory that records every construction."""

    def __init__(self, **model_fields: Any) -> None:
        self.model_fields = model_fields
        self.created: list[ProviderConfig] = []
        self.params: list[dict[str, Any]] = []
        self.models: list[ScriptedChatModel] = []
        self.fail_next = 0

    def create(self, config: ProviderConfig) -> ScriptedChatModel:
        self.created.append(config)
        if self.fail_next:
            self.fail_next -= 1
            raise ValueError("invalid credentials")
        model = ScriptedChatModel(**self.model_fields)
        self.models.append(model)
        return model

    def create_with_params(self, config: ProviderConfig, params: dict[str, Any]):
        self.params.append(params)
        return self.create(config)


@pytest.fixture
def openai_config() -> ProviderConfig:
    """Enabled OpenAI configuration."""
    return ProviderConfig(
        id=OPENAI_ID,
        name="Work OpenAI",
        provider="openai",
        model="gpt-4o",
        api_key="sk-test",
        priority=5,
    )


@pytest.fixture
def gemini_config() -> ProviderConfig:
    """Enabled Gemini configuration."""
    return ProviderConfig(
        id=GEMINI_ID,
        name="Gemini",
        provider="gemini",
        model="gemini-2.5-pro",
        api_key="AIza-test-key",
        priority=1,
    )


@pytest.fixture
def factory() -> CountingFactory:
    """Counting factory producing echo models."""
    return CountingFactory()


@pytest.fixture
def gateway(factory: CountingFactory) -> LLMGateway:
    """Gateway wired to the counting factory."""
    return LLMGateway(factory=factory)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging during a test."""
    yield
    logger = logging.getLogger("deskchat")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
