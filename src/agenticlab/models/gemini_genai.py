import logging
from typing import Any, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from agenticlab.config import settings
from agenticlab.errors import BackendError
from agenticlab.models.base import ModelBackend
from agenticlab.runtime.cancel import CancellationToken, run_cancellable
from agenticlab.types import Message, ModelRequest, ModelResponse

logger = logging.getLogger(__name__)


class GeminiBackend(ModelBackend):
    """
    Google GenAI SDK (Gemini Developer API)，云端 backend。
    - system prompt -> GenerateContentConfig.system_instruction
    - history 里的 assistant -> model
    - repeat_penalty / num_ctx 在 Gemini 里没有对应参数，忽略
    """
    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, client: Any = None) -> None:
        self.model = model or settings.GEMINI_MODEL
        self._api_key = api_key
        self._client = client

    @property
    def name(self) -> str:
        return f"gemini:{self.model}"

    def _get_client(self) -> Any:
        # genai.Client() 会自动读取 GEMINI_API_KEY / GOOGLE_API_KEY；没有 key 时构造就会报错，所以延迟到第一次调用
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key) if self._api_key else genai.Client()
        return self._client

    @staticmethod
    def to_contents(prompt: str, history: Sequence[Message]) -> List[types.Content]:
        contents: List[types.Content] = []
        for m in history:
            role = m.get("role")
            text = (m.get("content") or "").strip()
            if not text or role not in ("user", "assistant"):
                continue
            contents.append(types.Content(
                role="model" if role == "assistant" else "user",
                parts=[types.Part.from_text(text=text)],
            ))
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=prompt)]))
        return contents

    @staticmethod
    def to_config(request: ModelRequest) -> types.GenerateContentConfig:
        kwargs: dict[str, Any] = {
            "temperature": request.temperature,
            "max_output_tokens": request.max_tokens,
        }
        if request.system_prompt:
            kwargs["system_instruction"] = request.system_prompt
        if request.top_p is not None:
            kwargs["top_p"] = request.top_p
        if request.top_k is not None:
            kwargs["top_k"] = request.top_k
        if request.seed is not None:
            kwargs["seed"] = request.seed
        if request.stop:
            kwargs["stop_sequences"] = list(request.stop)
        return types.GenerateContentConfig(**kwargs)

    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse:
        logger.info("Generating response with Gemini model: %s", self.model)
        contents = self.to_contents(request.prompt, request.history)
        config = self.to_config(request)

        try:
            client = self._get_client()
            resp = await run_cancellable(
                client.aio.models.generate_content(model=self.model, contents=contents, config=config),
                token,
            )
        except genai_errors.APIError as e:
            raise BackendError(f"Gemini request failed: {e}", status=getattr(e, "code", None), cause=e) from e
        except httpx.HTTPError as e:
            # SDK 的异步请求走 httpx，网络层错误不会包成 APIError
            raise BackendError(f"Gemini request failed: {e!r}", cause=e) from e
        except ValueError as e:
            # 缺 API key 等客户端配置问题
            raise BackendError(f"Gemini client error: {e}", cause=e) from e

        usage = getattr(resp, "usage_metadata", None)
        return ModelResponse(
            text=getattr(resp, "text", None) or "",
            model_name=self.model,
            prompt_tokens=int(getattr(usage, "prompt_token_count", None) or 0),
            completion_tokens=int(getattr(usage, "candidates_token_count", None) or 0),
        )
