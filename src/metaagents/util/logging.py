"""Logging helpers with secret redaction."""

from __future__ import annotations

import logging
import re
from typing import Iterable

_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_.]+"), "Bearer [REDACTED]"),
    (re.compile(r"sk-[A-Za-z0-9]+"), "sk-[REDACTED]"),
)


def redact(text: str, extra_secrets: Iterable[str] | None = None) -> str:
    """Mask bearer tokens, API keys and any explicitly listed secret."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    for secret in extra_secrets or ():
        if secret:
            text = text.replace(secret, "[REDACTED]")
    return text


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """Return a logger whose top-level package logger carries the handler.

    Passing ``level`` sets it on the package logger, so every module logger
    of the package follows it.
    """
    logger = logging.getLogger(name)
    package_logger = logging.getLogger(name.split(".")[0])
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.INFO)
    if level is not None:
        package_logger.setLevel(level)
    return logger
