import asyncio
from typing import Optional

from agenticlab.errors import BackendError
from agenticlab.models.base import ModelBackend
from agenticlab.runtime.cancel import CancellationToken, run_cancellable
from agenticlab.types import ModelRequest, ModelResponse


class MockBackend(ModelBackend):
    """不联网的假 backend：回显用户输入，token 数按空格切词估算。demo / 测试用。"""

    def __init__(self, model: str = "mock", delay_s: float = 0.0, fail_with: Optional[str] = None) -> None:
        self.model = model
        self.delay_s = delay_s
        self.fail_with = fail_with

    @property
    def name(self) -> str:
        return f"mock:{self.model}"

    async def _complete(self, request: ModelRequest) -> ModelResponse:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_with is not None:
            raise BackendError(self.fail_with)
        text = f"[mock] you said: {request.prompt}"
        return ModelResponse(
            text=text,
            model_name=self.model,
            prompt_tokens=len((request.system_prompt + " " + request.prompt).split()),
            completion_tokens=len(text.split()),
        )

    async def generate(self, request: ModelRequest, token: Optional[CancellationToken] = None) -> ModelResponse:
        return await run_cancellable(self._complete(request), token)
