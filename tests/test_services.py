"""
Tests for the model registry, the agent factory and the chat service.
"""
import asyncio
import itertools

import pytest

from agenticlab.agents import personas
from agenticlab.errors import (
    AgentConfigNotFoundError,
    ModelConfigNotFoundError,
    ProviderNotSupportedError,
    SessionNotFoundError,
)
from agenticlab.models.gemini_genai import GeminiBackend
from agenticlab.models.mock_client import MockBackend
from agenticlab.models.ollama import OllamaBackend
from agenticlab.runtime.agent_runtime import AgentRuntime
from agenticlab.runtime.cancel import CancellationToken
from agenticlab.services.agent_factory import AgentConfig, AgentFactory
from agenticlab.services.chat import ChatEntry, ChatService
from agenticlab.services.model_registry import ModelConfig, ModelRegistry


def _counter(prefix: str):
    numbers = itertools.count(1)
    return lambda: f"{prefix}{next(numbers)}"


class TestModelRegistry:
    def test_seeded_presets(self) -> None:
        ids = [c.id for c in ModelRegistry().configs()]
        assert ids == ["default-llama", "default-qwen", "precise-llama", "precise-qwen", "fast-llama", "creative-llama"]

    def test_add_update_remove(self) -> None:
        registry = ModelRegistry(configs=[], id_factory=_counter("m"))
        config = registry.add(ModelConfig(registry.new_id(), "Tiny", model_name="tiny"))
        assert config.id == "m1"
        assert registry.get("m1") is config

        assert registry.update(ModelConfig("m1", "Tiny v2", model_name="tiny:2")) is True
        assert registry.get("m1").model_name == "tiny:2"
        assert registry.update(ModelConfig("nope")) is False

        assert registry.remove("m1") is True
        assert registry.remove("m1") is False
        assert registry.configs() == []


class TestAgentFactory:
    def test_seeded_variants_cover_every_persona(self) -> None:
        factory = AgentFactory(ModelRegistry())
        configs = factory.configs()
        assert len(configs) == 16
        assert {c.agent_type for c in configs} == set(personas.registered_types())
        assert factory.get("creative-high").temperature_override == 1.0

    def test_create_agent_merges_persona_model_and_overrides(self) -> None:
        factory = AgentFactory(ModelRegistry())
        agent = factory.create_agent(factory.get("qa-precise"))

        assert agent.name == "qa-precise"
        assert agent.description == personas.get_persona("SimpleQuestion").description
        assert agent.defaults.system_prompt == personas.get_default_system_prompt("SimpleQuestion")
        assert agent.defaults.temperature == 0.2
        assert agent.defaults.max_tokens == 1500
        assert isinstance(agent.backend, OllamaBackend)
        assert agent.backend.model == "qwen2.5-coder:14b"

    def test_model_defaults_apply_when_no_override(self, mock_factory: AgentFactory) -> None:
        agent = mock_factory.create_agent(mock_factory.get("sum"))
        assert (agent.defaults.temperature, agent.defaults.max_tokens) == (0.3, 400)

    def test_system_prompt_override(self, mock_registry) -> None:
        factory = AgentFactory(mock_registry, configs=[
            AgentConfig("pirate", "Pirate", "SimpleQuestion", "mock-a", system_prompt_override="Talk like a pirate.", seed_override=7),
        ])
        agent = factory.create_agent(factory.get("pirate"))
        assert agent.defaults.system_prompt == "Talk like a pirate."
        assert agent.defaults.seed == 7

    def test_missing_model_config(self, mock_factory: AgentFactory) -> None:
        with pytest.raises(ModelConfigNotFoundError):
            mock_factory.create_agent(mock_factory.get("orphan"))

    def test_unsupported_provider(self, mock_factory: AgentFactory) -> None:
        with pytest.raises(ProviderNotSupportedError) as exc:
            mock_factory.create_agent(mock_factory.get("unsupported"))
        assert exc.value.provider == "bogus"

    def test_backend_per_provider(self, mock_factory: AgentFactory) -> None:
        assert isinstance(mock_factory.create_backend(ModelConfig("x", provider="mock")), MockBackend)
        assert isinstance(mock_factory.create_backend(ModelConfig("y", provider="gemini", model_name="gemini-2.5-flash")), GeminiBackend)
        ollama = mock_factory.create_backend(ModelConfig("z", provider="ollama", endpoint="http://gpu-box:11434/"))
        assert ollama.base_url == "http://gpu-box:11434"

    def test_add_and_remove_config(self, mock_factory: AgentFactory) -> None:
        added = mock_factory.add(AgentConfig("new", "New", "Classifier", "mock-a"))
        assert mock_factory.get("new") is added
        assert mock_factory.remove("new") is True
        assert mock_factory.get("new") is None


class TestChatService:
    @pytest.fixture
    def chat(self, mock_factory: AgentFactory) -> ChatService:
        return ChatService(mock_factory, AgentRuntime(), id_factory=_counter("s"))

    def test_create_session_uses_injected_ids(self, chat: ChatService) -> None:
        assert chat.create_session("qa").id == "s1"
        assert chat.create_session("sum").id == "s2"
        assert [s.id for s in chat.sessions()] == ["s1", "s2"]

    def test_create_session_for_unknown_config(self, chat: ChatService) -> None:
        with pytest.raises(AgentConfigNotFoundError):
            chat.create_session("ghost")

    @pytest.mark.asyncio
    async def test_conversation_keeps_history(self, chat: ChatService) -> None:
        session = chat.create_session("qa")

        first = await chat.send_message(session.id, "hello")
        second = await chat.send_message(session.id, "again")

        assert first.success and second.success
        assert first.agent_name == "qa"
        assert first.model_name == "mock-a"
        assert second.content == "[mock] you said: again"
        assert [e.role for e in session.entries] == ["user", "assistant", "user", "assistant"]
        assert chat.runtime.list_registered() == ["qa"]

    @pytest.mark.asyncio
    async def test_prior_turns_are_sent_as_history(self, chat: ChatService, monkeypatch, backend_cls) -> None:
        backend = backend_cls(text="noted")
        monkeypatch.setattr(chat.factory, "create_backend", lambda config: backend)
        session = chat.create_session("qa")

        await chat.send_message(session.id, "first")
        await chat.send_message(session.id, "second")

        assert backend.requests[0].history == ()
        assert backend.requests[1].prompt == "second"
        assert backend.requests[1].history == (
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "noted"},
        )

    @pytest.mark.asyncio
    async def test_unsupported_provider_propagates(self, chat: ChatService, mock_factory: AgentFactory) -> None:
        mock_factory.add(AgentConfig("broken", "Broken", "SimpleQuestion", "bogus"))
        session = chat.create_session("broken")
        with pytest.raises(ProviderNotSupportedError):
            await chat.send_message(session.id, "hi")
        assert session.entries == []

    @pytest.mark.asyncio
    async def test_unknown_session(self, chat: ChatService) -> None:
        with pytest.raises(SessionNotFoundError):
            await chat.send_message("nope", "hi")

    def test_clear_and_remove(self, chat: ChatService) -> None:
        session = chat.create_session("qa")
        session.entries.append(ChatEntry(role="user", content="hi"))
        chat.clear_session(session.id)
        assert session.entries == []
        assert chat.remove_session(session.id) is True
        assert chat.remove_session(session.id) is False

    @pytest.mark.asyncio
    async def test_cancelled_turn_leaves_history_untouched(
        self, chat: ChatService, monkeypatch, backend_cls, blocking_backend
    ) -> None:
        answering = backend_cls(text="noted")
        monkeypatch.setattr(chat.factory, "create_backend", lambda config: answering)
        session = chat.create_session("qa")
        await chat.send_message(session.id, "first")
        before = list(session.entries)

        monkeypatch.setattr(chat.factory, "create_backend", lambda config: blocking_backend)
        token = CancellationToken()
        turn = asyncio.create_task(chat.send_message(session.id, "never answered", token))
        await asyncio.sleep(0.01)
        token.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(turn, timeout=2)

        assert session.entries == before

        monkeypatch.setattr(chat.factory, "create_backend", lambda config: answering)
        await chat.send_message(session.id, "second")
        assert [m["content"] for m in answering.requests[-1].history] == ["first", "noted"]
