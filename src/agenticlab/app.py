import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from agenticlab.api_schemas import (
    AgentResponseOut,
    ChatRequest,
    CompareRequest,
    CreateSessionRequest,
    SendRequest,
)
from agenticlab.config import settings
from agenticlab.errors import (
    AgentConfigNotFoundError,
    AgentNotFoundError,
    ModelConfigNotFoundError,
    ProviderNotSupportedError,
    SessionNotFoundError,
)
from agenticlab.observability.otel import setup_otel
from agenticlab.runtime.agent_runtime import AgentRuntime
from agenticlab.runtime.events import EventBus
from agenticlab.runtime.task_manager import TaskManager
from agenticlab.services.agent_factory import AgentFactory
from agenticlab.services.chat import ChatService
from agenticlab.services.compare import CompareService
from agenticlab.services.model_registry import ModelRegistry
from agenticlab.types import AgentRequest

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.TRACING_ENABLED:
        setup_otel()
    yield


app = FastAPI(title="AgenticLab", version="0.2.0", lifespan=lifespan)

# 进程内单例：全部状态都在内存里
model_registry = ModelRegistry()
agent_factory = AgentFactory(model_registry)
runtime = AgentRuntime()
compare_service = CompareService(agent_factory)
chat_service = ChatService(agent_factory, runtime)
tm = TaskManager()
bus = EventBus()


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(AgentNotFoundError)
@app.exception_handler(AgentConfigNotFoundError)
@app.exception_handler(ModelConfigNotFoundError)
@app.exception_handler(SessionNotFoundError)
async def not_found_handler(_request: Request, exc: Exception):
    return _error(404, exc)


@app.exception_handler(ProviderNotSupportedError)
async def bad_request_handler(_request: Request, exc: Exception):
    return _error(400, exc)


@app.get("/")
def root():
    return {"name": "AgenticLab", "env": settings.APP_ENV, "hint": "Try /health /docs"}

@app.get("/health")
def health():
    return {"ok": True, "env": settings.APP_ENV}


@app.get("/agent-types")
def list_agent_types():
    return {"agent_types": [asdict(t) for t in agent_factory.available_agent_types()]}

@app.get("/agent-configs")
def list_agent_configs():
    return {"agent_configs": [asdict(c) for c in agent_factory.configs()]}

@app.get("/models")
def list_models():
    return {"models": [asdict(c) for c in model_registry.configs()]}

@app.get("/models/available")
async def available_models():
    return {"online": await model_registry.is_online(), "models": await model_registry.available_models()}


@app.get("/agents")
def list_agents():
    return {"agents": runtime.list_registered()}

@app.post("/agents/{config_id}")
def register_agent(config_id: str):
    config = agent_factory.get(config_id)
    if config is None:
        raise AgentConfigNotFoundError(config_id)
    agent = agent_factory.create_agent(config)
    runtime.register(agent)
    return {"registered": agent.name, "description": agent.description}

@app.delete("/agents/{name}")
def unregister_agent(name: str):
    if not runtime.unregister(name):
        raise AgentNotFoundError(name)
    return {"unregistered": name}

@app.post("/agents/{name}/send", response_model=AgentResponseOut)
async def send(name: str, req: SendRequest):
    request = AgentRequest(
        message=req.message,
        history=[m.model_dump() for m in req.history],
        metadata=req.metadata,
    )
    response = await runtime.send(name, request)
    return AgentResponseOut(**asdict(response))


@app.post("/compare")
async def compare(req: CompareRequest):
    result = await compare_service.compare(req.prompt, req.agent_config_ids)
    return asdict(result)


@app.post("/sessions")
def create_session(req: CreateSessionRequest):
    session = chat_service.create_session(req.agent_config_id)
    return {"session_id": session.id, "agent_config_id": session.agent_config_id}

@app.get("/session/{session_id}/history")
def session_history(session_id: str):
    session = chat_service.get(session_id)
    return {"session_id": session.id, "entries": [asdict(e) for e in session.entries]}

# SSE 事件订阅
@app.get("/session/{session_id}/events")
async def sse_events(session_id: str):
    async def gen():
        async for ev in bus.subscribe(session_id):
            yield {"event": "runtime", "data": json.dumps(ev, ensure_ascii=False, default=str)}
    return EventSourceResponse(gen())

@app.post("/session/{session_id}/chat")
async def chat(session_id: str, req: ChatRequest):
    chat_service.get(session_id)

    async def job(token):
        await bus.publish(session_id, {"type": "run_start", "kind": "chat"})
        try:
            entry = await chat_service.send_message(session_id, req.message, token)
            await bus.publish(session_id, {"type": "agent_response", "entry": asdict(entry)})
            await bus.publish(session_id, {"type": "run_done", "kind": "chat", "success": entry.success})
        except asyncio.CancelledError:
            await bus.publish(session_id, {"type": "cancelled", "kind": "chat"})
            raise
        except Exception as e:
            await bus.publish(session_id, {"type": "error", "kind": "chat", "error": str(e)})
            raise

    r = tm.start(session_id, job)
    return {"result": r}

@app.post("/session/{session_id}/cancel")
async def cancel(session_id: str):
    await bus.publish(session_id, {"type": "cancel_called"})
    r = tm.cancel(session_id)
    return {"result": r}

@app.get("/session/{session_id}/status")
def status(session_id: str):
    return tm.get_status(session_id)
