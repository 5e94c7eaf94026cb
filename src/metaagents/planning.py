"""Sub-agent plans: loading, validation, merging and registration."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field, ValidationError

from metaagents.architect import ArchitectOrchestrator
from metaagents.errors import PlanError
from metaagents.tasks import ExecutorLike, TaskDefinition


class SubAgentDefinition(BaseModel):
    """Declarative description of one developer sub-agent."""

    id: str
    title: str | None = None
    agent: str = "developer"
    mission: str
    dependencies: list[str] = Field(default_factory=list)
    command: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_title(self) -> str:
        return self.title or self.id


class TaskPlan(BaseModel):
    feature_request: str | None = None
    tasks: list[SubAgentDefinition]
    testers: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class PlanValidationResult:
    ok: bool
    errors: list[str]
    depth: int = 0


def _import_yaml():
    try:
        import yaml  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional
        raise PlanError("Install metaagents[yaml] to load YAML plans.") from exc
    return yaml


def load_task_plan(path: str | Path) -> TaskPlan:
    path_obj = Path(path)
    if not path_obj.is_file():
        raise PlanError(f"Plan file not found: {path_obj}")
    text = path_obj.read_text(encoding="utf-8")
    try:
        if path_obj.suffix in {".yaml", ".yml"}:
            payload = _import_yaml().safe_load(text)
        else:
            payload = json.loads(text)
    except PlanError:
        raise
    except Exception as exc:
        raise PlanError(f"Could not parse plan {path_obj}: {exc}") from exc
    if not isinstance(payload, dict):
        raise PlanError("Task plan must be a mapping with a 'tasks' list.")
    try:
        return TaskPlan.model_validate(payload)
    except ValidationError as exc:
        raise PlanError(str(exc)) from exc


def validate_task_plan(plan: TaskPlan) -> PlanValidationResult:
    errors: list[str] = []
    ids = [task.id for task in plan.tasks]
    duplicates = sorted({task_id for task_id in ids if ids.count(task_id) > 1})
    for task_id in duplicates:
        errors.append(f"Duplicate task id: {task_id}")
    deps: dict[str, list[str]] = {}
    for task in plan.tasks:
        if task.id in task.dependencies:
            errors.append(f"Task {task.id} depends on itself")
        deps.setdefault(task.id, [dep for dep in task.dependencies if dep != task.id])
    for task_id in plan.testers:
        if task_id not in deps:
            errors.append(f"Tester configured for unknown task: {task_id}")
    depth = _compute_depth(deps, errors)
    return PlanValidationResult(ok=not errors, errors=errors, depth=depth)


def _compute_depth(deps: dict[str, list[str]], errors: list[str]) -> int:
    visiting: set[str] = set()
    visited: dict[str, int] = {}

    def visit(node: str) -> int:
        if node in visited:
            return visited[node]
        if node in visiting:
            if "Task graph contains a cycle" not in errors:
                errors.append("Task graph contains a cycle")
            return 0
        visiting.add(node)
        depth = 1
        for parent in deps.get(node, []):
            if parent not in deps:
                errors.append(f"Unknown dependency: {parent} (required by {node})")
                continue
            depth = max(depth, 1 + visit(parent))
        visiting.remove(node)
        visited[node] = depth
        return depth

    return max((visit(node) for node in deps), default=0)


def topological_order(definitions: Iterable[SubAgentDefinition]) -> list[str]:
    """Dependency-first ordering; cycles and unknown ids are skipped, not raised."""
    definitions = list(definitions)
    deps = {definition.id: list(definition.dependencies) for definition in definitions}
    order: list[str] = []
    visiting: set[str] = set()
    visited: set[str] = set()

    def visit(node: str) -> None:
        if node in visited or node in visiting or node not in deps:
            return
        visiting.add(node)
        for parent in deps[node]:
            visit(parent)
        visiting.remove(node)
        visited.add(node)
        order.append(node)

    for definition in definitions:
        visit(definition.id)
    return order


def merge_sub_agents(
    existing: Iterable[SubAgentDefinition],
    additions: Iterable[SubAgentDefinition],
) -> list[SubAgentDefinition]:
    """Merge two rosters by id.

    For a known id the fields the addition sets explicitly override the
    current entry; omitted fields keep their current values. Dependencies
    are the union of both lists and metadata is merged (addition wins).
    """
    merged: dict[str, SubAgentDefinition] = {}
    for entry in existing:
        merged[entry.id] = entry.model_copy(
            update={"dependencies": list(dict.fromkeys(entry.dependencies))}, deep=True
        )
    for entry in additions:
        current = merged.get(entry.id)
        if current is None:
            merged[entry.id] = entry.model_copy(
                update={"dependencies": list(dict.fromkeys(entry.dependencies))}, deep=True
            )
            continue
        merged[entry.id] = current.model_copy(
            update={
                **entry.model_dump(exclude_unset=True),
                "dependencies": list(dict.fromkeys([*current.dependencies, *entry.dependencies])),
                "metadata": {**current.metadata, **entry.metadata},
            },
            deep=True,
        )
    return list(merged.values())


def merge_task_plans(base: TaskPlan, extra: TaskPlan) -> TaskPlan:
    """Layer ``extra`` over ``base``: merged roster, extra testers win."""
    return TaskPlan(
        feature_request=base.feature_request or extra.feature_request,
        tasks=merge_sub_agents(base.tasks, extra.tasks),
        testers={**base.testers, **extra.testers},
    )


def register_sub_agents(
    architect: ArchitectOrchestrator,
    definitions: Iterable[SubAgentDefinition],
    executor_factory: Callable[[SubAgentDefinition], ExecutorLike],
) -> None:
    for definition in definitions:
        architect.register_task(
            TaskDefinition(
                id=definition.id,
                title=definition.display_title,
                mission=definition.mission,
                dependencies=list(definition.dependencies),
                executor=executor_factory(definition),
            )
        )
