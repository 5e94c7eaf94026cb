import json
import logging

from metaagents.observability import MetricsCollector
from metaagents.trace import TraceRecorder
from metaagents.util.logging import get_logger, redact


def test_redact_masks_tokens_and_explicit_secrets():
    text = "Authorization: Bearer abc.def key sk-XYZ123 pass hunter2"
    redacted = redact(text, extra_secrets=["hunter2", ""])
    assert "abc.def" not in redacted
    assert "sk-XYZ123" not in redacted
    assert "hunter2" not in redacted
    assert "[REDACTED]" in redacted


def test_get_logger_shares_package_handler():
    first = get_logger("metaagents.alpha")
    second = get_logger("metaagents.beta", "WARNING")
    package = logging.getLogger("metaagents")
    assert len(package.handlers) == 1
    assert package.level == logging.WARNING
    assert first.getEffectiveLevel() == logging.WARNING
    assert second.name == "metaagents.beta"
    get_logger("metaagents", "INFO")


def test_metrics_export_appends_jsonl(tmp_path):
    metrics = MetricsCollector(workspace_dir=tmp_path)
    metrics.inc("waves")
    metrics.inc("waves", 2)
    metrics.record_task("failed")
    metrics.record_tester("pass")
    with metrics.measure("wave"):
        pass
    payload = metrics.export_json({"trace_id": "t"})
    metrics.export_json()
    assert payload["counters"] == {"waves": 3, "tasks_failed": 1, "tester_pass": 1}
    assert payload["trace_id"] == "t"
    files = list((tmp_path / "metrics").glob("*.jsonl"))
    assert len(files) == 1
    lines = files[0].read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["timers"]["wave"]["count"] == 1
    assert "trace_id" not in json.loads(lines[1])


def test_metrics_without_workspace_stay_in_memory():
    metrics = MetricsCollector()
    payload = metrics.export_json()
    assert payload["counters"] == {}
    assert payload["timers"] == {}
    assert "timestamp" in payload


def test_trace_finalize(tmp_path):
    trace = TraceRecorder(workspace_dir=str(tmp_path))
    trace.record_task("task_failed", "a", "token Bearer secret")
    trace.record_tester_report("qa-a", "fail", 2)
    path = trace.finalize({"ok": False})
    data = json.loads(open(path, encoding="utf-8").read())
    assert data["trace_id"] == trace.trace_id
    assert [event["type"] for event in data["events"]] == ["task_failed", "tester_report"]
    assert "secret" not in data["events"][0]["payload"]["error"]
    assert data["events"][1]["payload"] == {"plan_item_id": "qa-a", "status": "fail", "defects": 2}


def test_trace_without_workspace_is_memory_only():
    trace = TraceRecorder()
    trace.record("wave_started", {"wave": 1})
    assert trace.finalize({}) is None
    assert trace.event_types() == ["wave_started"]
    assert trace.events_of("wave_started")[0]["elapsed"] >= 0
