"""Event trace of one orchestration run, written as JSON on finalize."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from metaagents.util.logging import redact


@dataclass
class TraceRecorder:
    workspace_dir: str | None = None
    trace_id: str = field(default_factory=lambda: uuid4().hex)
    started_at: float = field(default_factory=time.time)
    events: list[dict[str, Any]] = field(default_factory=list)

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        now = time.time()
        self.events.append(
            {
                "type": event_type,
                "timestamp": now,
                "elapsed": round(now - self.started_at, 6),
                "payload": payload,
            }
        )

    def record_task(self, event_type: str, task_id: str, error: str | None = None) -> None:
        payload: dict[str, Any] = {"task_id": task_id}
        if error is not None:
            payload["error"] = redact(error)
        self.record(event_type, payload)

    def record_tester_report(self, plan_item_id: str, status: str, defects: int) -> None:
        self.record(
            "tester_report",
            {"plan_item_id": plan_item_id, "status": status, "defects": defects},
        )

    def event_types(self) -> list[str]:
        return [event["type"] for event in self.events]

    def events_of(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.events if event["type"] == event_type]

    def finalize(self, stats: dict[str, Any]) -> str | None:
        if not self.workspace_dir:
            return None
        trace_dir = Path(self.workspace_dir) / "traces"
        trace_dir.mkdir(parents=True, exist_ok=True)
        trace_path = trace_dir / f"{self.trace_id}.json"
        payload = {
            "trace_id": self.trace_id,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "stats": stats,
            "events": self.events,
        }
        trace_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return str(trace_path)
