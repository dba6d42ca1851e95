from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from agenticlab.errors import AgentConfigNotFoundError, SessionNotFoundError
from agenticlab.runtime.agent_runtime import AgentRuntime
from agenticlab.runtime.cancel import CancellationToken
from agenticlab.services.agent_factory import AgentFactory
from agenticlab.services.model_registry import IdFactory, short_id, utcnow
from agenticlab.types import AgentRequest, Message

logger = logging.getLogger(__name__)


@dataclass
class ChatEntry:
    role: str
    content: str
    agent_name: Optional[str] = None
    model_name: Optional[str] = None
    duration_ms: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    success: bool = True
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class ChatSession:
    id: str
    agent_config_id: str
    entries: List[ChatEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    def history(self) -> List[Message]:
        return [{"role": e.role, "content": e.content} for e in self.entries if e.role in ("user", "assistant")]


class ChatService:
    """
    内存里的会话 + 对话历史。每次发消息：
    配置 -> 新建 agent -> 注册到 runtime（同名覆盖）-> runtime.send(历史 + 本轮)
    """
    def __init__(self, factory: AgentFactory, runtime: AgentRuntime, id_factory: IdFactory = short_id) -> None:
        self.factory = factory
        self.runtime = runtime
        self._id_factory = id_factory
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    def sessions(self) -> List[ChatSession]:
        with self._lock:
            return list(self._sessions.values())

    def get(self, session_id: str) -> ChatSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def create_session(self, agent_config_id: str) -> ChatSession:
        if self.factory.get(agent_config_id) is None:
            raise AgentConfigNotFoundError(agent_config_id)
        session = ChatSession(id=self._id_factory(), agent_config_id=agent_config_id)
        with self._lock:
            self._sessions[session.id] = session
        logger.info("Created chat session %s for agent config %s", session.id, agent_config_id)
        return session

    async def send_message(
        self,
        session_id: str,
        message: str,
        token: Optional[CancellationToken] = None,
    ) -> ChatEntry:
        session = self.get(session_id)
        config = self.factory.get(session.agent_config_id)
        if config is None:
            raise AgentConfigNotFoundError(session.agent_config_id)

        agent = self.factory.create_agent(config)
        self.runtime.register(agent)

        # 历史只取本轮之前的
        request = AgentRequest(message=message, history=session.history())
        user_entry = ChatEntry(role="user", content=message)

        t0 = time.perf_counter()
        response = await self.runtime.send(agent.name, request, token)
        duration_ms = int((time.perf_counter() - t0) * 1000)

        meta = response.metadata or {}
        entry = ChatEntry(
            role="assistant",
            content=response.message,
            agent_name=response.agent_name,
            model_name=meta.get("model"),
            duration_ms=duration_ms,
            prompt_tokens=int(meta.get("promptTokens", 0)),
            completion_tokens=int(meta.get("completionTokens", 0)),
            success=response.success,
        )
        # 取消时两条都不写入，历史里不会留下没有回答的问题
        session.entries.extend((user_entry, entry))
        return entry

    def clear_session(self, session_id: str) -> None:
        self.get(session_id).entries.clear()

    def remove_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None
