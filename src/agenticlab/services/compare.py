"""
同一个 prompt 并发跑多个 agent 配置，结果按输入顺序返回。

单个条目失败（配置不存在 / 创建 agent 失败 / 处理异常）只影响它自己，
compare() 整体不会因为某一条失败而抛错；调用方取消时所有子任务一起取消。
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from opentelemetry import trace

from agenticlab.errors import AgentConfigNotFoundError
from agenticlab.runtime.cancel import CancellationToken
from agenticlab.services.agent_factory import AgentFactory
from agenticlab.services.model_registry import utcnow
from agenticlab.types import AgentRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class CompareEntry:
    agent_config_id: str
    display_name: str = ""
    model_name: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None
    success: bool = False
    duration_ms: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass
class CompareResult:
    prompt: str
    entries: List[CompareEntry] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)


class CompareService:
    def __init__(self, factory: AgentFactory) -> None:
        self.factory = factory

    async def compare(
        self,
        prompt: str,
        agent_config_ids: Iterable[str],
        token: Optional[CancellationToken] = None,
    ) -> CompareResult:
        ids = list(agent_config_ids)
        with tracer.start_as_current_span("compare.run") as span:
            span.set_attribute("compare.size", len(ids))
            # gather 保证输出顺序 = 输入顺序；外层被取消时 gather 会取消所有子任务
            entries = await asyncio.gather(*(self._run_single(cid, prompt, token) for cid in ids))
        return CompareResult(prompt=prompt, entries=list(entries))

    async def _run_single(self, config_id: str, prompt: str, token: Optional[CancellationToken]) -> CompareEntry:
        entry = CompareEntry(agent_config_id=config_id)
        with tracer.start_as_current_span("compare.entry") as span:
            span.set_attribute("agent.config_id", config_id)
            t0 = time.perf_counter()
            try:
                config = self.factory.get(config_id)
                if config is None:
                    raise AgentConfigNotFoundError(config_id)
                entry.display_name = config.display_name

                agent = self.factory.create_agent(config)

                response = await agent.process(AgentRequest(message=prompt), token)

                entry.success = response.success
                if response.success:
                    entry.response = response.message
                else:
                    entry.error = response.message
                meta = response.metadata or {}
                entry.model_name = meta.get("model")
                entry.prompt_tokens = int(meta.get("promptTokens", 0))
                entry.completion_tokens = int(meta.get("completionTokens", 0))
            except Exception as e:
                entry.success = False
                entry.error = str(e)
                logger.error("Compare failed for config %s: %s", config_id, e)
            entry.duration_ms = int((time.perf_counter() - t0) * 1000)
            span.set_attribute("agent.success", entry.success)
        return entry
