"""
模型配置表（内存里，进程重启就没了）+ 本地 Ollama 探测。
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from agenticlab.config import settings
from agenticlab.models.ollama import OllamaProbe

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def short_id() -> str:
    return uuid.uuid4().hex[:8]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ModelConfig:
    id: str
    display_name: str = ""
    provider: str = "ollama"  # ollama / gemini / mock
    model_name: str = "llama3.2"
    endpoint: str = field(default_factory=lambda: settings.OLLAMA_BASE_URL)
    temperature: float = 0.7
    max_tokens: int = 1000
    system_prompt: str = "You are a helpful assistant."
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)


_HELPFUL = "You are a helpful assistant. Answer questions clearly and concisely."
_PRECISE = "You are a helpful assistant. Be precise, accurate, and deterministic. Prefer factual, structured answers."


def default_model_configs() -> List[ModelConfig]:
    return [
        ModelConfig("default-llama", "Llama 3.2 (Default)", model_name="llama3.2",
                    temperature=0.7, max_tokens=1000, system_prompt=_HELPFUL),
        ModelConfig("default-qwen", "Qwen 2.5 14B", model_name="qwen2.5:14b",
                    temperature=0.7, max_tokens=2000, system_prompt=_HELPFUL),
        ModelConfig("precise-llama", "Llama 3.2 (Precise)", model_name="llama3.2",
                    temperature=0.2, max_tokens=1500, system_prompt=_PRECISE),
        ModelConfig("precise-qwen", "Qwen 2.5 Coder 14B (Precise)", model_name="qwen2.5-coder:14b",
                    temperature=0.2, max_tokens=2000, system_prompt=_PRECISE),
        ModelConfig("fast-llama", "Llama 3.2 (Fast)", model_name="llama3.2",
                    temperature=0.8, max_tokens=500,
                    system_prompt="You are a helpful assistant. Be concise and respond quickly."),
        ModelConfig("creative-llama", "Llama 3.2 (Creative)", model_name="llama3.2",
                    temperature=1.0, max_tokens=1000,
                    system_prompt="You are a creative assistant. Be imaginative and expressive."),
    ]


class ModelRegistry:
    def __init__(
        self,
        configs: Optional[List[ModelConfig]] = None,
        probe: Optional[OllamaProbe] = None,
        id_factory: IdFactory = short_id,
    ) -> None:
        self._configs: List[ModelConfig] = list(default_model_configs() if configs is None else configs)
        self._lock = threading.Lock()
        self._probe = probe or OllamaProbe()
        self._id_factory = id_factory

    def configs(self) -> List[ModelConfig]:
        with self._lock:
            return list(self._configs)

    def get(self, config_id: str) -> Optional[ModelConfig]:
        with self._lock:
            return next((c for c in self._configs if c.id == config_id), None)

    def new_id(self) -> str:
        return self._id_factory()

    def add(self, config: ModelConfig) -> ModelConfig:
        with self._lock:
            self._configs.append(config)
        logger.info("Added model config: %s (%s)", config.display_name, config.model_name)
        return config

    def update(self, config: ModelConfig) -> bool:
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

    async def available_models(self) -> List[Dict[str, Any]]:
        return await self._probe.list_models()

    async def is_online(self) -> bool:
        return await self._probe.is_online()
