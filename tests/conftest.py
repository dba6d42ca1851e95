"""
Shared fixtures: in-memory backends and factories wired to the mock provider.
"""
import asyncio
from typing import Callable, List, Optional

import httpx
import pytest

from agenticlab.errors import BackendError
from agenticlab.models.base import ModelBackend
from agenticlab.models.ollama import OllamaBackend
from agenticlab.runtime.cancel import CancellationToken, run_cancellable
from agenticlab.services.agent_factory import AgentConfig, AgentFactory
from agenticlab.services.model_registry import ModelConfig, ModelRegistry
from agenticlab.types import ModelRequest, ModelResponse


class RecordingBackend(ModelBackend):
    """Returns a fixed completion and remembers every request it was given."""

    def __init__(self, text: str = "ok", model: str = "recorder", error: Optional[str] = None) -> None:
        self.text = text
        self.model = model
        self.error = error
        self.requests: List[ModelRequest] = []

    @property
    def name(self) -> str:
        return f"recording:{self.model}"

    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse:
        self.requests.append(request)
        if self.error is not None:
            raise BackendError(self.error)
        return ModelResponse(text=self.text, model_name=self.model, prompt_tokens=3, completion_tokens=5)


class BlockingBackend(ModelBackend):
    """Never completes on its own; only cancellation ends a call."""

    @property
    def name(self) -> str:
        return "blocking"

    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse:
        return await run_cancellable(asyncio.sleep(3600), token)


@pytest.fixture
def recording_backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def backend_cls():
    return RecordingBackend


@pytest.fixture
def blocking_backend() -> BlockingBackend:
    return BlockingBackend()


@pytest.fixture
def ollama_backend() -> Callable[..., OllamaBackend]:
    """Build an OllamaBackend whose HTTP traffic goes to `handler`."""
    def _make(handler, model: str = "llama3.2") -> OllamaBackend:
        return OllamaBackend(
            model=model,
            base_url="http://ollama.test",
            timeout_s=5.0,
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def mock_registry() -> ModelRegistry:
    return ModelRegistry(configs=[
        ModelConfig("mock-a", "Mock A", provider="mock", model_name="mock-a", temperature=0.7, max_tokens=800),
        ModelConfig("mock-b", "Mock B", provider="mock", model_name="mock-b", temperature=0.3, max_tokens=400),
        ModelConfig("bogus", "Bogus", provider="bogus", model_name="nothing"),
    ])


@pytest.fixture
def mock_factory(mock_registry: ModelRegistry) -> AgentFactory:
    return AgentFactory(mock_registry, configs=[
        AgentConfig("qa", "Q&A", "SimpleQuestion", "mock-a", temperature_override=0.2),
        AgentConfig("sum", "Summarizer", "Summarizer", "mock-b"),
        AgentConfig("orphan", "Orphan", "Classifier", "missing-model"),
        AgentConfig("unsupported", "Unsupported", "Translator", "bogus"),
    ])
