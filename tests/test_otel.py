"""
Tests for the JSONL span exporter.
"""
import json

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor

from agenticlab.observability.otel import JsonlFileSpanExporter


def test_spans_are_written_one_per_line(tmp_path):
    path = tmp_path / "nested" / "traces.jsonl"
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(JsonlFileSpanExporter(str(path))))
    tracer = provider.get_tracer("test")

    with tracer.start_as_current_span("compare.run") as parent:
        parent.set_attribute("compare.size", 2)
        with tracer.start_as_current_span("compare.entry"):
            pass
    with tracer.start_as_current_span("GET /session/{session_id}/events"):
        pass

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["name"] for r in records] == ["compare.entry", "compare.run"]
    child, root = records
    assert child["parent_span_id"] == root["span_id"]
    assert child["trace_id"] == root["trace_id"]
    assert root["parent_span_id"] is None
    assert root["attributes"] == {"compare.size": 2}
