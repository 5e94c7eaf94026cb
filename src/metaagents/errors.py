"""Error taxonomy for the orchestration engines."""

from __future__ import annotations

from typing import Iterable


class MetaAgentError(Exception):
    """Base exception for metaagents errors.

    Use this for user-facing errors that should have actionable messages.
    """


class ArchitectError(MetaAgentError):
    """Raised when the task graph cannot be registered or executed."""


class DuplicateTaskError(ArchitectError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f'Task with id "{task_id}" is already registered.')


class SelfDependencyError(ArchitectError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f'Task "{task_id}" cannot depend on itself.')


class InvalidExecutorError(ArchitectError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(
            f'Task "{task_id}" requires an executor: a TaskExecutor or a callable.'
        )


class NoTasksError(ArchitectError):
    def __init__(self) -> None:
        super().__init__("No sub-agent tasks have been registered.")


class UnknownDependencyError(ArchitectError):
    def __init__(self, task_id: str, dependency_id: str) -> None:
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(
            f'Task "{task_id}" has an unknown dependency "{dependency_id}". '
            "Register the dependency before executing."
        )


class CircularDependencyError(ArchitectError):
    def __init__(self, task_ids: Iterable[str]) -> None:
        self.task_ids = list(task_ids)
        super().__init__(
            "Unable to progress architect execution. Check for circular dependencies "
            f"among: {', '.join(self.task_ids)}."
        )


class InvalidTaskOutputError(ArchitectError):
    def __init__(self, task_id: str, reason: str = "A summary is required.") -> None:
        self.task_id = task_id
        super().__init__(f'Task "{task_id}" returned an invalid output. {reason}')


class TaskTimeoutError(ArchitectError):
    def __init__(self, task_id: str, timeout_seconds: float) -> None:
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f'Task "{task_id}" timed out after {timeout_seconds:g}s.')


class QuasarError(MetaAgentError):
    """Raised when the verification run cannot produce a quality report."""


class InvalidTesterReportError(QuasarError):
    def __init__(self, plan_item_id: str, reason: str = "A status is required.") -> None:
        self.plan_item_id = plan_item_id
        super().__init__(f"Tester report for {plan_item_id} is invalid. {reason}")


class TesterTimeoutError(QuasarError):
    def __init__(self, plan_item_id: str, timeout_seconds: float) -> None:
        self.plan_item_id = plan_item_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Tester for {plan_item_id} timed out after {timeout_seconds:g}s.")


class PlanError(MetaAgentError, ValueError):
    """Raised when a task plan file is malformed."""


class CommandFailedError(MetaAgentError):
    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        message = f'Command "{command}" exited with code {exit_code}.'
        tail = stderr.strip()[-500:]
        if tail:
            message = f"{message} {tail}"
        super().__init__(message)
