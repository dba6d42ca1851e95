"""
agent 配置表 + 工厂：AgentConfig -> ModelConfig -> backend -> ConfigurableAgent。

生效的默认参数按这个顺序合并（后者覆盖前者）：
  人设 system prompt  <-  模型配置的 temperature / max_tokens  <-  agent 配置里的 *_override
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from agenticlab.agents import personas
from agenticlab.agents.configurable import ConfigurableAgent
from agenticlab.errors import ModelConfigNotFoundError, ProviderNotSupportedError
from agenticlab.models.base import ModelBackend
from agenticlab.models.gemini_genai import GeminiBackend
from agenticlab.models.mock_client import MockBackend
from agenticlab.models.ollama import OllamaBackend
from agenticlab.sampling import SamplingConfig, resolve
from agenticlab.services.model_registry import IdFactory, ModelConfig, ModelRegistry, short_id, utcnow

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    id: str
    display_name: str = ""
    agent_type: str = "SimpleQuestion"
    model_config_id: str = ""
    system_prompt_override: Optional[str] = None
    temperature_override: Optional[float] = None
    max_tokens_override: Optional[int] = None
    top_p_override: Optional[float] = None
    top_k_override: Optional[int] = None
    repeat_penalty_override: Optional[float] = None
    num_ctx_override: Optional[int] = None
    seed_override: Optional[int] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)

    def overrides(self) -> Dict[str, Any]:
        return {
            "systemPrompt": self.system_prompt_override,
            "temperature": self.temperature_override,
            "maxTokens": self.max_tokens_override,
            "topP": self.top_p_override,
            "topK": self.top_k_override,
            "repeatPenalty": self.repeat_penalty_override,
            "numCtx": self.num_ctx_override,
            "seed": self.seed_override,
        }


def _variant(config_id: str, display: str, agent_type: str, model: str, temp: float, max_tokens: int) -> AgentConfig:
    return AgentConfig(
        id=config_id,
        display_name=display,
        agent_type=agent_type,
        model_config_id=model,
        temperature_override=temp,
        max_tokens_override=max_tokens,
    )


def default_agent_configs() -> List[AgentConfig]:
    # 每个人设一对 precise / fast；creative 用高低温度做对比
    return [
        _variant("qa-precise", "Q&A (Precise)", "SimpleQuestion", "precise-qwen", 0.2, 1500),
        _variant("qa-fast", "Q&A (Fast)", "SimpleQuestion", "fast-llama", 0.8, 500),
        _variant("sum-precise", "Summarizer (Precise)", "Summarizer", "precise-qwen", 0.2, 1000),
        _variant("sum-fast", "Summarizer (Fast)", "Summarizer", "fast-llama", 0.7, 500),
        _variant("extract-precise", "Data Extractor (Precise)", "DataExtractor", "precise-qwen", 0.1, 2000),
        _variant("extract-fast", "Data Extractor (Fast)", "DataExtractor", "fast-llama", 0.3, 1000),
        _variant("code-precise", "Code Generator (Precise)", "CodeGenerator", "precise-qwen", 0.2, 2000),
        _variant("code-fast", "Code Generator (Fast)", "CodeGenerator", "fast-llama", 0.5, 1000),
        _variant("translate-precise", "Translator (Precise)", "Translator", "precise-qwen", 0.2, 1500),
        _variant("translate-fast", "Translator (Fast)", "Translator", "fast-llama", 0.5, 800),
        _variant("classify-precise", "Classifier (Precise)", "Classifier", "precise-qwen", 0.1, 1000),
        _variant("classify-fast", "Classifier (Fast)", "Classifier", "fast-llama", 0.3, 500),
        _variant("convert-precise", "Format Converter (Precise)", "FormatConverter", "precise-qwen", 0.1, 2000),
        _variant("convert-fast", "Format Converter (Fast)", "FormatConverter", "fast-llama", 0.3, 1000),
        _variant("creative-low", "Creative Writer (Low Temp)", "CreativeWriter", "default-llama", 0.2, 1000),
        _variant("creative-high", "Creative Writer (High Temp)", "CreativeWriter", "creative-llama", 1.0, 1000),
    ]


class AgentFactory:
    def __init__(
        self,
        model_registry: ModelRegistry,
        configs: Optional[List[AgentConfig]] = None,
        id_factory: IdFactory = short_id,
    ) -> None:
        self.model_registry = model_registry
        self._configs: List[AgentConfig] = list(default_agent_configs() if configs is None else configs)
        self._lock = threading.Lock()
        self._id_factory = id_factory

    def configs(self) -> List[AgentConfig]:
        with self._lock:
            return list(self._configs)

    def get(self, config_id: str) -> Optional[AgentConfig]:
        with self._lock:
            return next((c for c in self._configs if c.id == config_id), None)

    def new_id(self) -> str:
        return self._id_factory()

    def add(self, config: AgentConfig) -> AgentConfig:
        with self._lock:
            self._configs.append(config)
        logger.info("Added agent config: %s (%s)", config.display_name, config.agent_type)
        return config

    def update(self, config: AgentConfig) -> bool:
        with self._lock:
            for i, c in enumerate(self._configs):
                if c.id == config.id:
                    self._configs[i] = config
                    return True
        return False

    def remove(self, config_id: str) -> bool:
        with self._lock:
            before = len(self._configs)
            self._configs = [c for c in self._configs if c.id != config_id]
            return len(self._configs) < before

    @staticmethod
    def available_agent_types() -> List[personas.AgentTypeInfo]:
        return personas.available_agent_types()

    def create_backend(self, config: ModelConfig) -> ModelBackend:
        if config.provider == "ollama":
            return OllamaBackend(model=config.model_name, base_url=config.endpoint)
        if config.provider == "gemini":
            return GeminiBackend(model=config.model_name)
        if config.provider == "mock":
            return MockBackend(model=config.model_name)
        raise ProviderNotSupportedError(config.provider)

    def resolve_defaults(self, agent_config: AgentConfig, model_config: ModelConfig) -> SamplingConfig:
        base = SamplingConfig(
            system_prompt=personas.get_default_system_prompt(agent_config.agent_type),
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens,
        )
        return resolve(base, agent_config.overrides())

    def create_agent(self, agent_config: AgentConfig) -> ConfigurableAgent:
        model_config = self.model_registry.get(agent_config.model_config_id)
        if model_config is None:
            logger.warning("Model config %s not found for agent %s", agent_config.model_config_id, agent_config.id)
            raise ModelConfigNotFoundError(agent_config.model_config_id)

        backend = self.create_backend(model_config)
        defaults = self.resolve_defaults(agent_config, model_config)
        # 运行时里用配置 id 做 agent 名：同一个人设可以有多个配置同时注册
        return personas.create_agent(agent_config.agent_type, backend, name=agent_config.id, defaults=defaults)
