"""Subprocess execution for command-backed executors.

Commands never see the caller's full environment: only an allowlist, the
``METAAGENTS_*`` variables and the names listed in ``SANDBOX_PASSTHROUGH_ENV``
are forwarded, and credential-looking keys are always dropped.
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

_ALLOWED_KEYS = frozenset({"PATH", "PYTHONPATH", "HOME", "TMPDIR", "USER", "LANG", "SYSTEMROOT"})
_FORWARDED_PREFIX = "METAAGENTS_"
_SENSITIVE_PREFIXES = ("OPENAI_", "API_KEY", "TOKEN", "SECRET")


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def run_command(
    command: list[str],
    cwd: Path,
    env: Mapping[str, str],
    timeout_seconds: int = 600,
    extra_env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run ``command`` to completion; a timeout is reported, not raised."""
    child_env = sanitize_env(env)
    child_env.update(extra_env or {})
    start = time.perf_counter()
    try:
        process = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            cwd=cwd,
            env=child_env,
        )
    except subprocess.TimeoutExpired as exc:
        return CommandResult(
            stdout=_as_text(exc.stdout),
            stderr=f"{_as_text(exc.stderr)}\nTimed out after {timeout_seconds}s.".strip(),
            exit_code=-1,
            duration_seconds=time.perf_counter() - start,
            timed_out=True,
        )
    return CommandResult(
        stdout=process.stdout or "",
        stderr=process.stderr or "",
        exit_code=process.returncode,
        duration_seconds=time.perf_counter() - start,
    )


def _as_text(value: str | bytes | None) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


def sanitize_env(env: Mapping[str, str]) -> dict[str, str]:
    allowed = _ALLOWED_KEYS | passthrough_keys()
    return {
        key: value
        for key, value in env.items()
        if not is_sensitive_key(key) and (key in allowed or key.startswith(_FORWARDED_PREFIX))
    }


def passthrough_keys() -> frozenset[str]:
    raw = os.environ.get("SANDBOX_PASSTHROUGH_ENV", "")
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def is_sensitive_key(key: str) -> bool:
    return key.upper().startswith(_SENSITIVE_PREFIXES)
