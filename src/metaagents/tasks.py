"""Task graph models shared by the architect and the verification stage."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Mapping, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

TaskStatus = Literal["pending", "running", "completed", "failed", "blocked"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "blocked"})


class TaskOutput(BaseModel):
    """What a sub-agent reports back after finishing its mission."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    details: str | None = None
    files_touched: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("files_touched", "filesTouched"),
    )
    artifacts: dict[str, str] = Field(default_factory=dict)
    notes: str | None = None

    @field_validator("summary")
    @classmethod
    def _summary_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be blank")
        return value

    def normalized(self) -> "TaskOutput":
        return self.model_copy(
            update={
                "files_touched": list(dict.fromkeys(self.files_touched)),
                "artifacts": dict(self.artifacts),
            }
        )


class TaskState(BaseModel):
    id: str
    title: str
    mission: str
    dependencies: list[str] = Field(default_factory=list)
    status: TaskStatus = "pending"
    started_at: str | None = None
    finished_at: str | None = None
    output: TaskOutput | None = None
    error: str | None = None

    @property
    def files_touched(self) -> list[str]:
        return list(self.output.files_touched) if self.output else []

    @property
    def artifact_keys(self) -> list[str]:
        return list(self.output.artifacts) if self.output else []


class Handoff(BaseModel):
    """Immutable result of one architect run."""

    model_config = ConfigDict(frozen=True)

    feature_request: str
    directive_title: str
    tasks: list[TaskState]
    files_touched: list[str]
    handoff_document: str

    def get_task(self, task_id: str) -> TaskState | None:
        return next((task for task in self.tasks if task.id == task_id), None)

    def artifacts(self) -> dict[str, str]:
        """Merged artifact map; later tasks win on key collisions."""
        merged: dict[str, str] = {}
        for task in self.tasks:
            if task.output:
                merged.update(task.output.artifacts)
        return merged

    def statuses(self) -> dict[str, str]:
        return {task.id: task.status for task in self.tasks}


TaskResult = Union[TaskOutput, Mapping[str, Any]]


class TaskExecutor(ABC):
    """Strategy that performs the work of one sub-agent task."""

    @abstractmethod
    async def run(self) -> TaskResult:
        raise NotImplementedError


class CallableTaskExecutor(TaskExecutor):
    """Adapts a plain function (sync or async) to the executor interface."""

    def __init__(self, func: Callable[[], TaskResult | Awaitable[TaskResult]]) -> None:
        self.func = func

    async def run(self) -> TaskResult:
        result = self.func()
        if inspect.isawaitable(result):
            result = await result
        return result


ExecutorLike = Union[TaskExecutor, Callable[[], Any]]


def as_task_executor(executor: Any) -> TaskExecutor | None:
    if isinstance(executor, TaskExecutor):
        return executor
    if callable(executor):
        return CallableTaskExecutor(executor)
    return None


@dataclass
class TaskDefinition:
    """Caller supplied description of one sub-agent task."""

    id: str
    title: str
    mission: str
    executor: ExecutorLike
    dependencies: list[str] = field(default_factory=list)
