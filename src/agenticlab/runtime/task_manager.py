import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from .cancel import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class TaskRecord:
    task: Optional[asyncio.Task]
    token: CancellationToken
    status: str  # running/done/cancelled/error
    error: Optional[str] = None


class TaskManager:
    """
    每个 session_id 同时最多一个后台任务：
    - start(): 启动并注册（已有运行中的任务则拒绝）
    - cancel(): token + task 双重取消，进行中的模型请求会被中断
    - get_status(): 查询状态；任务结束后保留最后状态，释放 task 引用
    """
    def __init__(self):
        self._tasks: Dict[str, TaskRecord] = {}

    def start(self, session_id: str, coro_factory: Callable[[CancellationToken], Awaitable[None]]) -> str:
        rec = self._tasks.get(session_id)
        if rec is not None and rec.status == "running":
            return "already_running"

        token = CancellationToken()
        record = TaskRecord(task=None, token=token, status="running")

        async def runner():
            try:
                await coro_factory(token)
                record.status = "done"
            except asyncio.CancelledError:
                record.status = "cancelled"
                raise
            except Exception as e:
                logger.exception("Background job failed session=%s", session_id)
                record.status = "error"
                record.error = str(e)

        record.task = asyncio.create_task(runner(), name=f"session:{session_id}")
        self._tasks[session_id] = record
        record.task.add_done_callback(lambda _t: self._cleanup(record))
        return "started"

    def cancel(self, session_id: str) -> str:
        rec = self._tasks.get(session_id)
        if not rec:
            return "not_found"
        if rec.status != "running":
            return rec.status

        rec.token.cancel()
        if rec.task is not None:
            rec.task.cancel()
        return "cancelling"

    def get_status(self, session_id: str) -> Dict:
        rec = self._tasks.get(session_id)
        if not rec:
            return {"exists": False}
        return {"exists": True, "status": rec.status, "error": rec.error}

    async def wait(self, session_id: str) -> None:
        """等任务结束（测试 / 优雅退出用），不向外抛任务自身的异常。"""
        rec = self._tasks.get(session_id)
        if rec is not None and rec.task is not None:
            await asyncio.gather(rec.task, return_exceptions=True)

    @staticmethod
    def _cleanup(record: TaskRecord) -> None:
        # 任务在真正开始前就被取消时 runner 里的 except 不会执行
        if record.status == "running":
            record.status = "cancelled"
        record.task = None
