"""Quasar: verification planning and quality aggregation over a handoff."""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import ValidationError

from metaagents.config import DEFAULT_SETTINGS, Settings
from metaagents.directive import Directive, MarkdownParser, parse_directive
from metaagents.errors import InvalidTesterReportError, QuasarError, TesterTimeoutError
from metaagents.observability import MetricsCollector
from metaagents.quality import (
    AggregatedReport,
    GlobalQualityReport,
    TesterExecutor,
    TesterReport,
    VerificationPlan,
    VerificationPlanItem,
    as_tester_executor,
)
from metaagents.rendering import compose_summary, render_quality_report, resolve_overall_status
from metaagents.tasks import Handoff, TaskState
from metaagents.trace import TraceRecorder
from metaagents.util.logging import get_logger

logger = get_logger(__name__)


def build_plan_item(task: TaskState) -> VerificationPlanItem:
    related_files = task.files_touched
    focus_areas = list(dict.fromkeys([*related_files, *task.artifact_keys]))
    parts = [
        f'Validate the deliverables produced by developer task "{task.title}" '
        f"(mission: {task.mission})."
    ]
    if focus_areas:
        parts.append(f"Focus on artifacts/files: {', '.join(focus_areas)}")
    parts.append(f"Architect reported status: {task.status.upper()}.")
    return VerificationPlanItem(
        id=f"qa-{task.id}",
        title=f"{task.title} QA",
        mission=" ".join(parts),
        target_task_id=task.id,
        related_files=related_files,
        focus_areas=focus_areas,
    )


class QuasarOrchestrator:
    def __init__(
        self,
        directive: Directive,
        handoff: Handoff,
        *,
        settings: Settings | None = None,
        trace: TraceRecorder | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._directive = directive
        self._handoff = handoff
        self.settings = settings or DEFAULT_SETTINGS
        self.trace = trace
        self.metrics = metrics or MetricsCollector()
        self._plan = VerificationPlan(
            feature_request=handoff.feature_request,
            directive_title=directive.title,
            items=[build_plan_item(task) for task in handoff.tasks],
        )

    @classmethod
    def from_markdown(
        cls,
        directive_markdown: str,
        handoff: Handoff,
        *,
        parser: MarkdownParser | None = None,
        **kwargs: Any,
    ) -> "QuasarOrchestrator":
        return cls(parse_directive(directive_markdown, parser=parser), handoff, **kwargs)

    @property
    def directive(self) -> Directive:
        return self._directive

    @property
    def handoff(self) -> Handoff:
        return self._handoff

    @property
    def test_plan(self) -> VerificationPlan:
        return self._plan.model_copy(deep=True)

    def get_test_plan(self) -> VerificationPlan:
        return self.test_plan

    async def execute_tests(self, tester: Any) -> GlobalQualityReport:
        """Run the tester over every plan item, one at a time, and aggregate.

        Any invalid tester report aborts the whole run; no partial report is
        returned.
        """
        executor = as_tester_executor(tester)
        if executor is None:
            raise QuasarError("Quasar requires a tester: a TesterExecutor or a callable.")
        reports: list[AggregatedReport] = []
        for item in self._plan.items:
            # Testers get a copy so the cached plan stays untouched.
            raw = await self._invoke(executor, item.model_copy(deep=True))
            report = self._normalize(item, raw)
            reports.append(report)
            self.metrics.record_tester(report.status)
            logger.info("Tester for %s reported %s", item.id, report.status)
            if self.trace:
                self.trace.record_tester_report(item.id, report.status, len(report.defects))

        overall_status = resolve_overall_status(reports)
        summary = compose_summary(overall_status, reports)
        markdown = render_quality_report(
            overall_status,
            summary,
            self._handoff,
            self._plan,
            reports,
            self._directive,
            reference_section=self.settings.quality_reference_section,
            excerpt_chars=self.settings.handoff_excerpt_chars,
        )
        if overall_status == "FAILURE":
            logger.warning(summary)
        else:
            logger.info(summary)
        if self.trace:
            self.trace.record("quality_report", {"overall_status": overall_status})
        return GlobalQualityReport(
            overall_status=overall_status,
            summary=summary,
            feature_request=self._handoff.feature_request,
            plan=self._plan.model_copy(deep=True),
            reports=reports,
            markdown=markdown,
        )

    async def _invoke(self, executor: TesterExecutor, item: VerificationPlanItem) -> Any:
        timeout = self.settings.tester_timeout_seconds
        with self.metrics.measure("tester"):
            if timeout is None:
                return await executor.run(item)
            try:
                return await asyncio.wait_for(executor.run(item), timeout)
            except asyncio.TimeoutError as exc:
                raise TesterTimeoutError(item.id, timeout) from exc

    @staticmethod
    def _normalize(item: VerificationPlanItem, raw: Any) -> AggregatedReport:
        if isinstance(raw, TesterReport):
            report = raw
        else:
            status = raw.get("status") if hasattr(raw, "get") else None
            if not status:
                raise InvalidTesterReportError(item.id)
            try:
                report = TesterReport.model_validate(dict(raw))
            except ValidationError as exc:
                raise InvalidTesterReportError(
                    item.id, f"Unsupported status or fields: {status!r}."
                ) from exc
        return AggregatedReport(
            plan_item_id=item.id,
            title=item.title,
            mission=item.mission,
            status=report.status,
            findings=report.findings or "",
            defects=list(report.defects or []),
            evidence=report.evidence,
        )
