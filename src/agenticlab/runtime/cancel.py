from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class CancellationToken:
    """
    协作式取消：
    - 长任务中定期 checkpoint()，一旦取消就抛 CancelledError
    - 网络调用用 run() 包一层：token 被取消时直接中断进行中的请求
    """
    def __init__(self):
        self._ev = asyncio.Event()

    def cancel(self) -> None:
        self._ev.set()

    @property
    def cancelled(self) -> bool:
        return self._ev.is_set()

    async def wait(self) -> None:
        await self._ev.wait()

    async def checkpoint(self) -> None:
        if self.cancelled:
            raise asyncio.CancelledError("Cancelled by user")

    async def run(self, aw: Awaitable[T]) -> T:
        """等待 aw；如果 token 先被取消，就取消 aw 并抛 CancelledError。不做重试。"""
        task = asyncio.ensure_future(aw)
        if self.cancelled:
            task.cancel()
            raise asyncio.CancelledError("Cancelled by user")

        waiter = asyncio.ensure_future(self._ev.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # 外层任务被取消：子任务也一起取消
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise asyncio.CancelledError("Cancelled by user")


async def run_cancellable(aw: Awaitable[T], token: Optional[CancellationToken]) -> T:
    if token is None:
        return await aw
    return await token.run(aw)
