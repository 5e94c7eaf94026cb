import pytest
from pydantic import ValidationError

from metaagents.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.workspace_dir == ".metaagents"
    assert settings.task_timeout_seconds is None
    assert settings.tester_timeout_seconds is None
    assert settings.handoff_excerpt_chars == 2000
    assert settings.handoff_reference_section == "Output & Handoff"
    assert settings.quality_reference_section == "Core Workflow"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("METAAGENTS_TASK_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("metaagents_handoff_excerpt_chars", "100")
    settings = Settings()
    assert settings.task_timeout_seconds == 2.5
    assert settings.handoff_excerpt_chars == 100


def test_timeouts_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(task_timeout_seconds=0)
