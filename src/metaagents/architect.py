"""Architect: dependency-ordered execution of sub-agent tasks.

Tasks are registered with their dependencies and an executor, then run in
waves. Every wave dispatches all ready tasks together and settles completely
before the next readiness scan. Failures stay local to the failing task; its
dependents are marked blocked rather than run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import ValidationError

from metaagents.config import DEFAULT_SETTINGS, Settings
from metaagents.directive import Directive, MarkdownParser, parse_directive
from metaagents.errors import (
    ArchitectError,
    CircularDependencyError,
    DuplicateTaskError,
    InvalidExecutorError,
    InvalidTaskOutputError,
    NoTasksError,
    SelfDependencyError,
    TaskTimeoutError,
    UnknownDependencyError,
)
from metaagents.observability import MetricsCollector
from metaagents.rendering import render_handoff_document
from metaagents.tasks import (
    Handoff,
    TaskDefinition,
    TaskExecutor,
    TaskOutput,
    TaskState,
    as_task_executor,
)
from metaagents.trace import TraceRecorder
from metaagents.util.logging import get_logger

logger = get_logger(__name__)

_UNRESOLVED = ("failed", "blocked")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _RegisteredTask:
    executor: TaskExecutor
    state: TaskState


class ArchitectOrchestrator:
    def __init__(
        self,
        directive: Directive,
        feature_request: str,
        *,
        settings: Settings | None = None,
        trace: TraceRecorder | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._directive = directive
        self._feature_request = feature_request
        self.settings = settings or DEFAULT_SETTINGS
        self.trace = trace
        self.metrics = metrics or MetricsCollector()
        self._tasks: dict[str, _RegisteredTask] = {}
        self._started = False

    @classmethod
    def from_markdown(
        cls,
        directive_markdown: str,
        feature_request: str,
        *,
        parser: MarkdownParser | None = None,
        **kwargs: Any,
    ) -> "ArchitectOrchestrator":
        directive = parse_directive(directive_markdown, parser=parser)
        return cls(directive, feature_request, **kwargs)

    @property
    def directive(self) -> Directive:
        return self._directive

    @property
    def feature_request(self) -> str:
        return self._feature_request

    def get_task_states(self) -> list[TaskState]:
        return [task.state.model_copy(deep=True) for task in self._tasks.values()]

    def register_task(self, definition: TaskDefinition) -> None:
        if self._started:
            raise ArchitectError(
                f'Cannot register task "{definition.id}" after execution has started.'
            )
        if definition.id in self._tasks:
            raise DuplicateTaskError(definition.id)
        executor = as_task_executor(definition.executor)
        if executor is None:
            raise InvalidExecutorError(definition.id)
        dependencies = list(dict.fromkeys(definition.dependencies or []))
        if definition.id in dependencies:
            raise SelfDependencyError(definition.id)
        self._tasks[definition.id] = _RegisteredTask(
            executor=executor,
            state=TaskState(
                id=definition.id,
                title=definition.title,
                mission=definition.mission,
                dependencies=dependencies,
            ),
        )

    async def execute(self) -> Handoff:
        if self._started:
            raise ArchitectError("Architect execution has already been started for this run.")
        if not self._tasks:
            raise NoTasksError()
        for task in self._tasks.values():
            for dependency_id in task.state.dependencies:
                if dependency_id not in self._tasks:
                    raise UnknownDependencyError(task.state.id, dependency_id)
        self._started = True
        logger.info(
            "Architect run started: %d tasks for %r", len(self._tasks), self._feature_request
        )

        wave = 0
        while True:
            ready = self._ready_tasks()
            if ready:
                wave += 1
                await self._run_wave(wave, ready)
                continue
            pending = self._pending_tasks()
            if not pending:
                break
            blocked = [task for task in pending if self._blocking_dependency(task) is not None]
            if not blocked:
                raise CircularDependencyError(task.state.id for task in pending)
            for task in blocked:
                self._mark_blocked(task)

        snapshots = self.get_task_states()
        files = list(
            dict.fromkeys(path for state in snapshots for path in state.files_touched)
        )
        document = render_handoff_document(
            self._feature_request,
            self._directive,
            snapshots,
            files,
            reference_section=self.settings.handoff_reference_section,
        )
        logger.info(
            "Architect run finished after %d waves: %s",
            wave,
            ", ".join(f"{state.id}={state.status}" for state in snapshots),
        )
        return Handoff(
            feature_request=self._feature_request,
            directive_title=self._directive.title,
            tasks=snapshots,
            files_touched=files,
            handoff_document=document,
        )

    async def _run_wave(self, wave: int, ready: list[_RegisteredTask]) -> None:
        ids = [task.state.id for task in ready]
        logger.info("Wave %d dispatching %s", wave, ", ".join(ids))
        self.metrics.inc("waves")
        if self.trace:
            self.trace.record("wave_started", {"wave": wave, "task_ids": ids})
        with self.metrics.measure("wave"):
            await asyncio.gather(*(self._run_task(task) for task in ready))

    async def _run_task(self, task: _RegisteredTask) -> None:
        state = task.state
        state.status = "running"
        state.started_at = _utc_now()
        if self.trace:
            self.trace.record_task("task_started", state.id)
        try:
            result = await self._invoke(task)
            state.output = self._validate_output(state.id, result)
            state.status = "completed"
            self.metrics.record_task("completed")
            logger.info('Task "%s" completed', state.id)
            if self.trace:
                self.trace.record_task("task_completed", state.id)
        except Exception as exc:
            state.status = "failed"
            state.error = str(exc)
            self.metrics.record_task("failed")
            logger.warning('Task "%s" failed: %s', state.id, state.error)
            if self.trace:
                self.trace.record_task("task_failed", state.id, state.error)
        finally:
            state.finished_at = _utc_now()

    async def _invoke(self, task: _RegisteredTask) -> Any:
        timeout = self.settings.task_timeout_seconds
        if timeout is None:
            return await task.executor.run()
        try:
            return await asyncio.wait_for(task.executor.run(), timeout)
        except asyncio.TimeoutError as exc:
            raise TaskTimeoutError(task.state.id, timeout) from exc

    @staticmethod
    def _validate_output(task_id: str, result: Any) -> TaskOutput:
        if isinstance(result, TaskOutput):
            output = result
        else:
            if isinstance(result, Mapping):
                result = dict(result)
            try:
                output = TaskOutput.model_validate(result)
            except ValidationError as exc:
                raise InvalidTaskOutputError(task_id) from exc
        if not output.summary.strip():
            raise InvalidTaskOutputError(task_id)
        return output.normalized()

    def _ready_tasks(self) -> list[_RegisteredTask]:
        return [
            task
            for task in self._tasks.values()
            if task.state.status == "pending"
            and all(
                self._tasks[dependency_id].state.status == "completed"
                for dependency_id in task.state.dependencies
            )
        ]

    def _pending_tasks(self) -> list[_RegisteredTask]:
        return [task for task in self._tasks.values() if task.state.status == "pending"]

    def _blocking_dependency(self, task: _RegisteredTask) -> str | None:
        return next(
            (
                dependency_id
                for dependency_id in task.state.dependencies
                if self._tasks[dependency_id].state.status in _UNRESOLVED
            ),
            None,
        )

    def _mark_blocked(self, task: _RegisteredTask) -> None:
        state = task.state
        dependency_id = self._blocking_dependency(task)
        state.status = "blocked"
        state.error = f'Blocked by dependency "{dependency_id}"'
        state.finished_at = _utc_now()
        self.metrics.record_task("blocked")
        logger.warning('Task "%s" blocked by dependency "%s"', state.id, dependency_id)
        if self.trace:
            self.trace.record_task("task_blocked", state.id, state.error)
