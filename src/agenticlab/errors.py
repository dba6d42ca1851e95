from __future__ import annotations

from typing import Any, Optional


class AgenticLabError(RuntimeError):
    """所有运行时错误的基类（只作用于单次调用，没有全局错误状态）。"""


class AgentNotFoundError(AgenticLabError):
    def __init__(self, agent_name: str) -> None:
        super().__init__(f"Agent '{agent_name}' is not registered.")
        self.agent_name = agent_name


class ConfigurationError(AgenticLabError):
    """覆盖参数存在但无法转换成目标类型。一定在发起网络请求之前抛出。"""

    def __init__(self, key: str, value: Any, reason: str = "cannot be converted") -> None:
        super().__init__(f"Invalid value for '{key}': {value!r} ({reason})")
        self.key = key
        self.value = value
        self.reason = reason


class BackendError(AgenticLabError):
    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.cause = cause


class ModelConfigNotFoundError(AgenticLabError):
    def __init__(self, model_config_id: str) -> None:
        super().__init__(f"Model config '{model_config_id}' not found.")
        self.model_config_id = model_config_id


class ProviderNotSupportedError(AgenticLabError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not supported.")
        self.provider = provider


class AgentConfigNotFoundError(AgenticLabError):
    def __init__(self, agent_config_id: str) -> None:
        super().__init__(f"Agent config '{agent_config_id}' not found.")
        self.agent_config_id = agent_config_id


class SessionNotFoundError(AgenticLabError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found.")
        self.session_id = session_id
