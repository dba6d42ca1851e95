from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, TypedDict

from agenticlab.sampling import SamplingConfig, SamplingOverrides

Role = Literal["system", "user", "assistant"]


class Message(TypedDict):
    role: Role
    content: str


@dataclass(frozen=True)
class AgentDescriptor:
    name: str
    description: str
    default_system_prompt: str
    default_temperature: float = 0.7
    default_max_tokens: int = 1000

    def default_sampling(self) -> SamplingConfig:
        return SamplingConfig(
            system_prompt=self.default_system_prompt,
            temperature=self.default_temperature,
            max_tokens=self.default_max_tokens,
        )


@dataclass
class AgentRequest:
    message: str
    history: List[Message] = field(default_factory=list)
    # 非强类型入口（JSON API 等）：camelCase key，见 sampling.OVERRIDE_FIELDS
    metadata: Optional[Mapping[str, Any]] = None
    overrides: Optional[SamplingOverrides] = None


@dataclass(frozen=True)
class ModelRequest:
    prompt: str
    system_prompt: str
    temperature: float
    max_tokens: int
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    repeat_penalty: Optional[float] = None
    num_ctx: Optional[int] = None
    seed: Optional[int] = None
    stop: Optional[Tuple[str, ...]] = None
    history: Tuple[Message, ...] = ()

    @classmethod
    def from_config(
        cls,
        prompt: str,
        config: SamplingConfig,
        history: Sequence[Message] = (),
    ) -> "ModelRequest":
        return cls(
            prompt=prompt,
            system_prompt=config.system_prompt,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            top_p=config.top_p,
            top_k=config.top_k,
            repeat_penalty=config.repeat_penalty,
            num_ctx=config.num_ctx,
            seed=config.seed,
            stop=config.stop,
            history=tuple(history),
        )


@dataclass(frozen=True)
class ModelResponse:
    text: str
    model_name: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass(frozen=True)
class AgentResponse:
    agent_name: str
    message: str
    success: bool
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, agent_name: str, cause: Any, metadata: Optional[Dict[str, Any]] = None) -> "AgentResponse":
        return cls(agent_name=agent_name, message=f"Error: {cause}", success=False, metadata=metadata or {})
