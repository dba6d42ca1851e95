"""
Ollama（本地推理）适配器：POST /api/generate，非流式。

options 里只放调用方真正给了的采样参数（temperature / num_predict 永远有），
其余交给 Ollama 自己的默认值。
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional, Sequence

import httpx

from agenticlab.config import settings
from agenticlab.errors import BackendError
from agenticlab.models.base import ModelBackend
from agenticlab.runtime.cancel import CancellationToken, run_cancellable
from agenticlab.types import Message, ModelRequest, ModelResponse

logger = logging.getLogger(__name__)

_ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}


def render_prompt(prompt: str, history: Sequence[Message]) -> str:
    """/api/generate 没有 messages 字段：有历史时把对话拼成文本，最后接上本轮问题。"""
    if not history:
        return prompt
    lines = []
    for m in history:
        text = (m.get("content") or "").strip()
        if not text:
            continue
        lines.append(f"{_ROLE_LABELS.get(m.get('role', 'user'), 'User')}: {text}")
    lines.append(f"User: {prompt}")
    lines.append("Assistant:")
    return "\n\n".join(lines)


def build_options(request: ModelRequest) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "temperature": request.temperature,
        "num_predict": request.max_tokens,
    }
    optional = {
        "top_p": request.top_p,
        "top_k": request.top_k,
        "repeat_penalty": request.repeat_penalty,
        "num_ctx": request.num_ctx,
        "seed": request.seed,
        "stop": list(request.stop) if request.stop else None,
    }
    options.update({k: v for k, v in optional.items() if v is not None})
    return options


def _int_field(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return int(value)


class OllamaBackend(ModelBackend):
    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model or settings.OLLAMA_MODEL
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.OLLAMA_TIMEOUT_S
        # transport 只在测试里注入（httpx.MockTransport）
        self._transport = transport

    @property
    def name(self) -> str:
        return f"ollama:{self.model}"

    def build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": render_prompt(request.prompt, request.history),
            "system": request.system_prompt,
            "stream": False,
            "options": build_options(request),
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s, transport=self._transport)

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        # 每次调用一个 client：实例本身不持有可变状态
        async with self._client() as client:
            return await client.post("/api/generate", json=payload)

    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse:
        logger.info("Generating response with Ollama model: %s", self.model)
        payload = self.build_payload(request)

        try:
            response = await run_cancellable(self._post(payload), token)
        except httpx.HTTPError as e:
            raise BackendError(f"Ollama request failed: {e!r}", cause=e) from e

        if not response.is_success:
            body = response.text
            raise BackendError(
                f"Ollama returned HTTP {response.status_code}: {body[:200]}",
                status=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            # JSONDecodeError / UnicodeDecodeError 都是 ValueError
            raise BackendError(f"Ollama returned a malformed body: {response.text[:200]!r}", body=response.text, cause=e) from e
        if not isinstance(data, dict):
            raise BackendError(f"Ollama returned a malformed body: {response.text[:200]!r}", body=response.text)

        text = data.get("response")
        return ModelResponse(
            text=text if isinstance(text, str) else "",
            model_name=self.model,
            prompt_tokens=_int_field(data, "prompt_eval_count"),
            completion_tokens=_int_field(data, "eval_count"),
        )


class OllamaProbe:
    """查询本地 Ollama 有哪些模型 / 是否在线。失败不抛错，只记日志。"""

    def __init__(self, base_url: Optional[str] = None, timeout_s: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s, transport=self._transport)

    async def list_models(self) -> list[Dict[str, Any]]:
        try:
            async with self._client() as client:
                resp = await client.get("/api/tags")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch Ollama models: %s", e)
            return []
        if not isinstance(data, dict):
            return []

        models = []
        for m in data.get("models") or []:
            details = m.get("details") or {}
            models.append({
                "name": m.get("name", ""),
                "size": _int_field(m, "size"),
                "modified_at": m.get("modified_at", ""),
                "family": details.get("family", ""),
                "parameter_size": details.get("parameter_size", ""),
                "quantization_level": details.get("quantization_level", ""),
            })
        return models

    async def is_online(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get("/")
            return resp.is_success
        except httpx.HTTPError as e:
            logger.info("Ollama not reachable at %s: %s", self.base_url, e)
            return False
