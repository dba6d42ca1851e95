from typing import Any, Literal

from pydantic import BaseModel, Field


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class SendRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: list[HistoryMessage] = Field(default_factory=list)
    # camelCase 覆盖项：systemPrompt / temperature / maxTokens / topP / topK / repeatPenalty / numCtx / seed / stop
    metadata: dict[str, Any] | None = None


class AgentResponseOut(BaseModel):
    agent_name: str
    message: str
    success: bool
    metadata: dict[str, Any] = Field(default_factory=dict)


class CompareRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    agent_config_ids: list[str] = Field(..., min_length=1)


class CreateSessionRequest(BaseModel):
    agent_config_id: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
