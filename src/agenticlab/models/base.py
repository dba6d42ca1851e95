from abc import ABC, abstractmethod
from typing import Optional

from agenticlab.runtime.cancel import CancellationToken
from agenticlab.types import ModelRequest, ModelResponse


class ModelBackend(ABC):
    """
    一个 LLM provider 的适配器：ModelRequest -> provider 协议 -> ModelResponse。
    实现必须是无状态的（除了固定配置），因为同一个实例会被多个 agent 并发调用。
    失败统一抛 BackendError。
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse: ...
