"""Command-line interface."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from metaagents.architect import ArchitectOrchestrator
from metaagents.commands import CommandTaskExecutor, CommandTester
from metaagents.config import Settings
from metaagents.directive import parse_directive
from metaagents.errors import MetaAgentError, PlanError
from metaagents.observability import MetricsCollector
from metaagents.planning import (
    SubAgentDefinition,
    TaskPlan,
    load_task_plan,
    merge_task_plans,
    register_sub_agents,
    topological_order,
    validate_task_plan,
)
from metaagents.quality import GlobalQualityReport
from metaagents.quasar import QuasarOrchestrator
from metaagents.tasks import Handoff
from metaagents.trace import TraceRecorder
from metaagents.util.logging import get_logger


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="metaagents", description="Meta-agent orchestration CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Execute a task plan and verify the handoff")
    run.add_argument("--plan", required=True, help="JSON or YAML task plan")
    run.add_argument(
        "--extra-plan",
        action="append",
        default=[],
        dest="extra_plans",
        help="Plan merged over --plan by task id (repeatable)",
    )
    run.add_argument("--directive", required=True, help="Architect directive markdown")
    run.add_argument("--qa-directive", dest="qa_directive", help="Quasar directive markdown")
    run.add_argument("--feature", help="Feature request (defaults to the plan's)")
    run.add_argument("--out", help="Output directory (defaults to the workspace dir)")
    run.add_argument("--cwd", default=".", help="Working directory for commands")
    run.add_argument("--skip-verify", action="store_true", dest="skip_verify")
    run.add_argument("--task-timeout", type=float, dest="task_timeout")
    run.add_argument("--tester-timeout", type=float, dest="tester_timeout")
    run.add_argument("--log-level", dest="log_level")

    sections = subparsers.add_parser("sections", help="List the headings of a directive")
    sections.add_argument("directive")
    sections.add_argument("--level", type=int)

    validate = subparsers.add_parser("validate", help="Validate a task plan")
    validate.add_argument("plan")
    validate.add_argument("--extra-plan", action="append", default=[], dest="extra_plans")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data: dict[str, Any] = settings.model_dump()
    if getattr(args, "out", None):
        data["workspace_dir"] = args.out
    if getattr(args, "task_timeout", None):
        data["task_timeout_seconds"] = args.task_timeout
    if getattr(args, "tester_timeout", None):
        data["tester_timeout_seconds"] = args.tester_timeout
    if getattr(args, "log_level", None):
        data["log_level"] = args.log_level.upper()
    return Settings(**data)


def _command_executor_factory(cwd: str, timeout_seconds: int):
    def factory(definition: SubAgentDefinition) -> CommandTaskExecutor:
        if not definition.command:
            raise PlanError(f"Task {definition.id} has no command to execute.")
        return CommandTaskExecutor(definition.command, cwd=cwd, timeout_seconds=timeout_seconds)

    return factory


def load_plan(path: str, extra_paths: Sequence[str] = ()) -> TaskPlan:
    plan = load_task_plan(path)
    for extra_path in extra_paths:
        plan = merge_task_plans(plan, load_task_plan(extra_path))
    return plan


async def run_architect(
    plan: TaskPlan,
    directive_markdown: str,
    feature_request: str,
    settings: Settings,
    cwd: str = ".",
    trace: TraceRecorder | None = None,
    metrics: MetricsCollector | None = None,
) -> Handoff:
    architect = ArchitectOrchestrator.from_markdown(
        directive_markdown, feature_request, settings=settings, trace=trace, metrics=metrics
    )
    register_sub_agents(
        architect,
        plan.tasks,
        _command_executor_factory(cwd, settings.command_timeout_seconds),
    )
    return await architect.execute()


async def run_verification(
    plan: TaskPlan,
    handoff: Handoff,
    qa_directive_markdown: str,
    settings: Settings,
    cwd: str = ".",
    trace: TraceRecorder | None = None,
    metrics: MetricsCollector | None = None,
) -> GlobalQualityReport:
    quasar = QuasarOrchestrator.from_markdown(
        qa_directive_markdown, handoff, settings=settings, trace=trace, metrics=metrics
    )
    tester = CommandTester(plan.testers, cwd=cwd, timeout_seconds=settings.command_timeout_seconds)
    return await quasar.execute_tests(tester)


def _write_outputs(
    out_dir: Path, handoff: Handoff, report: GlobalQualityReport | None
) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written = [out_dir / "handoff.md"]
    written[0].write_text(handoff.handoff_document, encoding="utf-8")
    payload: dict[str, Any] = {"handoff": handoff.model_dump(mode="json"), "quality": None}
    if report is not None:
        quality_path = out_dir / "quality_report.md"
        quality_path.write_text(report.markdown, encoding="utf-8")
        written.append(quality_path)
        payload["quality"] = report.model_dump(mode="json")
    run_path = out_dir / "run.json"
    run_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    written.append(run_path)
    return written


def cmd_run(args: argparse.Namespace) -> int:
    settings = apply_overrides(Settings(), args)
    logger = get_logger(__name__, settings.log_level)
    plan = load_plan(args.plan, args.extra_plans)
    validation = validate_task_plan(plan)
    if not validation.ok:
        raise PlanError("; ".join(validation.errors))
    feature_request = args.feature or plan.feature_request
    if not feature_request:
        raise PlanError("A feature request is required (--feature or plan.feature_request).")
    directive_markdown = Path(args.directive).read_text(encoding="utf-8")
    qa_path = args.qa_directive or args.directive
    qa_directive_markdown = Path(qa_path).read_text(encoding="utf-8")

    out_dir = Path(settings.workspace_dir)
    trace = TraceRecorder(workspace_dir=str(out_dir))
    metrics = MetricsCollector(workspace_dir=out_dir)
    report: GlobalQualityReport | None = None
    statuses: dict[str, str] = {}
    try:
        handoff = asyncio.run(
            run_architect(
                plan,
                directive_markdown,
                feature_request,
                settings,
                cwd=args.cwd,
                trace=trace,
                metrics=metrics,
            )
        )
        statuses = handoff.statuses()
        # The handoff is on disk before verification starts.
        written = _write_outputs(out_dir, handoff, None)
        if not args.skip_verify:
            report = asyncio.run(
                run_verification(
                    plan,
                    handoff,
                    qa_directive_markdown,
                    settings,
                    cwd=args.cwd,
                    trace=trace,
                    metrics=metrics,
                )
            )
            written = _write_outputs(out_dir, handoff, report)
    finally:
        trace.finalize({"statuses": statuses, "counters": dict(metrics.counters)})
        metrics.export_json({"trace_id": trace.trace_id})
    for path in written:
        logger.info("Wrote %s", path)

    unfinished = [task_id for task_id, status in statuses.items() if status != "completed"]
    print("Tasks:", ", ".join(f"{task_id}={status}" for task_id, status in statuses.items()))
    print("Files modified:", ", ".join(handoff.files_touched) or "none")
    if report is not None:
        print("Quality:", report.summary)
    if unfinished or (report is not None and report.overall_status == "FAILURE"):
        return 1
    return 0


def cmd_sections(args: argparse.Namespace) -> int:
    directive = parse_directive(Path(args.directive).read_text(encoding="utf-8"), level=args.level)
    print(f"# {directive.title}")
    for section in directive.sections:
        print(f"{'  ' * (section.depth - 1)}- {section.heading} [{section.slug}]")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    plan = load_plan(args.plan, args.extra_plans)
    result = validate_task_plan(plan)
    if not result.ok:
        for error in result.errors:
            print(f"error: {error}")
        return 1
    print("Order:", " -> ".join(topological_order(plan.tasks)))
    print("Depth:", result.depth)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    handlers = {"run": cmd_run, "sections": cmd_sections, "validate": cmd_validate}
    try:
        return handlers[args.command](args)
    except (MetaAgentError, OSError) as exc:
        print(f"metaagents: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
