from __future__ import annotations

import json
import os
from typing import Optional, Sequence

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from agenticlab.config import settings

# SSE 长连接的 span 没有分析价值
_SKIPPED_PREFIXES = ("GET /session/{session_id}/events",)


def span_to_record(sp: ReadableSpan) -> dict:
    ctx = sp.get_span_context()
    return {
        "name": sp.name,
        "trace_id": f"{ctx.trace_id:032x}",
        "span_id": f"{ctx.span_id:016x}",
        "parent_span_id": f"{sp.parent.span_id:016x}" if sp.parent else None,
        "start_time_ns": sp.start_time,
        "end_time_ns": sp.end_time,
        "status": str(sp.status.status_code),
        "attributes": dict(sp.attributes) if sp.attributes else {},
    }


class JsonlFileSpanExporter(SpanExporter):
    """把 spans 以 JSONL（每行一个 JSON）写入文件，方便 grep / 之后做分析。"""

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        with open(self.path, "a", encoding="utf-8") as f:
            for sp in spans:
                if sp.name.startswith(_SKIPPED_PREFIXES):
                    continue
                f.write(json.dumps(span_to_record(sp), ensure_ascii=False) + "\n")
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return


def setup_otel(service_name: str = "agenticlab", trace_file: Optional[str] = None) -> TracerProvider:
    """初始化 OpenTelemetry Tracing（默认写文件，配置了 OTEL_EXPORTER_OTLP_ENDPOINT 时再加 OTLP）。"""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)

    provider.add_span_processor(
        BatchSpanProcessor(JsonlFileSpanExporter(trace_file or settings.TRACE_FILE))
    )

    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    return provider
