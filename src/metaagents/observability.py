"""Run metrics for orchestration runs."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator


@dataclass
class MetricsCollector:
    """Counters and timings for one architect + quasar run.

    Counters: ``waves``, ``tasks_<status>`` and ``tester_<status>``.
    Timers: ``wave`` and ``tester``.
    """

    workspace_dir: Path | None = None
    counters: dict[str, int] = field(default_factory=dict)
    timers: dict[str, list[float]] = field(default_factory=dict)

    def inc(self, name: str, n: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + n

    def record_task(self, status: str) -> None:
        self.inc(f"tasks_{status}")

    def record_tester(self, status: str) -> None:
        self.inc(f"tester_{status}")

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timers.setdefault(name, []).append(time.perf_counter() - start)

    def summary(self) -> dict[str, Any]:
        timers = {
            name: {
                "count": len(samples),
                "total_seconds": round(sum(samples), 6),
                "max_seconds": round(max(samples), 6),
            }
            for name, samples in self.timers.items()
            if samples
        }
        return {"counters": dict(self.counters), "timers": timers}

    def export_json(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return the summary and append it to today's metrics file, if any."""
        payload: dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
        payload.update(self.summary())
        payload.update(extra or {})
        if self.workspace_dir:
            self._append(Path(self.workspace_dir), payload)
        return payload

    @staticmethod
    def _append(workspace: Path, payload: dict[str, Any]) -> None:
        target = workspace / "metrics" / f"{datetime.now(timezone.utc).date()}.jsonl"
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
