import asyncio
import logging
from typing import Any, AsyncIterator, Dict

from opentelemetry import trace

logger = logging.getLogger(__name__)


class EventBus:
    """按 session_id 分队列的运行时事件（chat 开始 / agent 响应 / 取消 / 错误），SSE 订阅用。"""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[dict]] = {}

    def get_queue(self, session_id: str) -> asyncio.Queue[dict]:
        return self._queues.setdefault(session_id, asyncio.Queue())

    def drop(self, session_id: str) -> None:
        self._queues.pop(session_id, None)

    @staticmethod
    def _attach_trace(event: Dict[str, Any]) -> Dict[str, Any]:
        """给事件附加 trace_id/span_id（如果当前有活跃 span）。不修改原 dict。"""
        ctx = trace.get_current_span().get_span_context()
        if not ctx.is_valid:
            return event
        e = dict(event)
        e["trace_id"] = f"{ctx.trace_id:032x}"
        e["span_id"] = f"{ctx.span_id:016x}"
        return e

    async def publish(self, session_id: str, event: Dict[str, Any]) -> None:
        ev = self._attach_trace(event)
        q = self.get_queue(session_id)
        await q.put(ev)
        logger.debug("Published event session=%s type=%s size=%d", session_id, ev.get("type"), q.qsize())

    async def subscribe(self, session_id: str) -> AsyncIterator[Dict[str, Any]]:
        q = self.get_queue(session_id)
        while True:
            ev = await q.get()
            logger.debug("Consumed event session=%s type=%s", session_id, ev.get("type"))
            yield ev
