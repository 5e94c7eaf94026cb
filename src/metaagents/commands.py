"""Task and tester executors backed by shell commands.

A command may print a JSON object as its last stdout line; that object is then
taken as the structured task output or tester report. Otherwise the exit code
and the captured output are mapped onto the result.
"""

from __future__ import annotations

import asyncio
import json
import os
import shlex
from pathlib import Path
from typing import Any, Mapping

from metaagents.errors import CommandFailedError
from metaagents.quality import TesterExecutor, TesterResult, VerificationPlanItem
from metaagents.safety.sandbox import CommandResult, run_command
from metaagents.tasks import TaskExecutor, TaskResult
from metaagents.util.logging import get_logger

logger = get_logger(__name__)


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""


def _json_tail(text: str) -> dict[str, Any] | None:
    tail = _last_line(text)
    if not tail.startswith("{"):
        return None
    try:
        payload = json.loads(tail)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


async def _run(
    command: str,
    cwd: Path,
    timeout_seconds: int,
    extra_env: Mapping[str, str] | None = None,
) -> CommandResult:
    logger.debug("Running command: %s", command)
    result = await asyncio.to_thread(
        run_command, shlex.split(command), cwd, os.environ.copy(), timeout_seconds, extra_env
    )
    if result.timed_out:
        logger.warning("Command timed out after %ss: %s", timeout_seconds, command)
    else:
        logger.info(
            "Command exited with %d in %.2fs: %s", result.exit_code, result.duration_seconds, command
        )
    return result


class CommandTaskExecutor(TaskExecutor):
    def __init__(self, command: str, cwd: str | Path = ".", timeout_seconds: int = 600) -> None:
        self.command = command
        self.cwd = Path(cwd)
        self.timeout_seconds = timeout_seconds

    async def run(self) -> TaskResult:
        result = await _run(self.command, self.cwd, self.timeout_seconds)
        if not result.ok:
            raise CommandFailedError(self.command, result.exit_code, result.stderr)
        payload = _json_tail(result.stdout)
        if payload is not None:
            return payload
        stdout = result.stdout.strip()
        return {
            "summary": _last_line(stdout) or f'Command "{self.command}" succeeded.',
            "details": stdout or None,
            "notes": result.stderr.strip() or None,
        }


class CommandTester(TesterExecutor):
    """Runs the tester command registered for a plan item's target task."""

    def __init__(
        self,
        commands: Mapping[str, str],
        cwd: str | Path = ".",
        timeout_seconds: int = 600,
    ) -> None:
        self.commands = dict(commands)
        self.cwd = Path(cwd)
        self.timeout_seconds = timeout_seconds

    async def run(self, item: VerificationPlanItem) -> TesterResult:
        command = self.commands.get(item.target_task_id)
        if not command:
            return {
                "status": "skipped",
                "findings": f"No tester command configured for task {item.target_task_id}.",
            }
        try:
            result = await _run(
                command,
                self.cwd,
                self.timeout_seconds,
                extra_env={
                    "METAAGENTS_PLAN_ITEM": item.id,
                    "METAAGENTS_TARGET_TASK": item.target_task_id,
                    "METAAGENTS_FOCUS": ",".join(item.focus_areas),
                },
            )
        except (OSError, ValueError) as exc:
            # Unparseable or unspawnable commands count against the item.
            logger.warning("Tester command for %s could not start: %s", item.id, exc)
            return {
                "status": "fail",
                "findings": f"Tester command could not be started: {exc}",
                "evidence": f'Command "{command}" did not start.',
            }
        payload = _json_tail(result.stdout)
        if payload is not None:
            return payload
        output = "\n".join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)
        return {
            "status": "pass" if result.ok else "fail",
            "findings": output,
            "evidence": f'Command "{command}" exited with code {result.exit_code}.',
        }
