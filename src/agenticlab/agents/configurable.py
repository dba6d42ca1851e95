from __future__ import annotations

import logging
from typing import Optional

from agenticlab.errors import BackendError
from agenticlab.models.base import ModelBackend
from agenticlab.runtime.cancel import CancellationToken
from agenticlab.sampling import SamplingConfig, resolve
from agenticlab.types import AgentDescriptor, AgentRequest, AgentResponse, ModelRequest

logger = logging.getLogger(__name__)


class ConfigurableAgent:
    """
    通用 agent：默认采样参数 + 每次请求的覆盖项 -> ModelRequest -> backend。
    所有人设（问答 / 摘要 / 抽取 ...）都是它，只是 descriptor 不同。
    """

    def __init__(
        self,
        backend: ModelBackend,
        descriptor: AgentDescriptor,
        defaults: Optional[SamplingConfig] = None,
    ) -> None:
        self.backend = backend
        self.descriptor = descriptor
        self.defaults = defaults or descriptor.default_sampling()

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def description(self) -> str:
        return self.descriptor.description

    def resolve_config(self, request: AgentRequest) -> SamplingConfig:
        """metadata（非强类型）先叠加，强类型 overrides 后叠加；类型错误直接抛 ConfigurationError。"""
        config = resolve(self.defaults, request.metadata)
        if request.overrides is not None:
            config = resolve(config, request.overrides.as_mapping())
        return config

    async def process(self, request: AgentRequest, token: Optional[CancellationToken] = None) -> AgentResponse:
        config = self.resolve_config(request)
        model_request = ModelRequest.from_config(request.message, config, request.history)

        try:
            response = await self.backend.generate(model_request, token)
        except BackendError as e:
            logger.warning("Agent '%s' backend %s failed: %s", self.name, self.backend.name, e)
            return AgentResponse.failed(self.name, e)

        metadata = {
            "model": response.model_name or "unknown",
            "promptTokens": response.prompt_tokens,
            "completionTokens": response.completion_tokens,
        }
        if not response.text.strip():
            return AgentResponse.failed(
                self.name, f"model '{metadata['model']}' returned an empty completion", metadata
            )
        return AgentResponse(agent_name=self.name, message=response.text, success=True, metadata=metadata)
