from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from agenticlab.errors import AgentNotFoundError
from agenticlab.runtime.cancel import CancellationToken
from agenticlab.types import AgentRequest, AgentResponse

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class Agent(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    async def process(self, request: AgentRequest, token: Optional[CancellationToken] = None) -> AgentResponse: ...


class AgentRuntime:
    """
    agent 注册表 + 分发：
    - register(): 按 name 覆盖写入（重复注册不报错）
    - send(): 找不到 agent -> AgentNotFoundError；处理过程中的异常 -> success=False 的响应
    - 取消（CancelledError）不算故障，原样向上抛
    """
    def __init__(self) -> None:
        self._agents: Dict[str, Agent] = {}
        # register 可能和 send/list 在不同线程/任务里并发
        self._lock = threading.Lock()

    def register(self, agent: Agent) -> None:
        with self._lock:
            self._agents[agent.name] = agent
        logger.info("Registered agent: %s", agent.name)

    def unregister(self, agent_name: str) -> bool:
        with self._lock:
            removed = self._agents.pop(agent_name, None)
        if removed is not None:
            logger.info("Unregistered agent: %s", agent_name)
        return removed is not None

    def get(self, agent_name: str) -> Agent:
        with self._lock:
            agent = self._agents.get(agent_name)
        if agent is None:
            raise AgentNotFoundError(agent_name)
        return agent

    def list_registered(self) -> List[str]:
        with self._lock:
            return list(self._agents)

    async def send(
        self,
        agent_name: str,
        request: AgentRequest,
        token: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        agent = self.get(agent_name)
        logger.info("Sending request to agent: %s", agent_name)

        with tracer.start_as_current_span("agent.send") as span:
            span.set_attribute("agent.name", agent_name)
            try:
                response = await agent.process(request, token)
            except Exception as e:
                logger.exception("Agent '%s' failed to process request.", agent_name)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.set_attribute("agent.success", False)
                return AgentResponse.failed(agent_name, e)

            span.set_attribute("agent.success", response.success)
            logger.info("Agent '%s' responded. Success: %s", agent_name, response.success)
            return response
