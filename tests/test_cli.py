import json
import shlex
import sys

from metaagents.cli import apply_overrides, main, parse_args
from metaagents.config import Settings

PYTHON = shlex.quote(sys.executable)

DIRECTIVE = "# Developer Directive\n\n## Output & Handoff\n\nSummarize.\n"
QA_DIRECTIVE = "# QA Directive\n\n## Core Workflow\n\nTest everything.\n"


def _write_plan(tmp_path, tasks, testers=None, feature="Guided onboarding"):
    (tmp_path / "ok.py").write_text(
        "import json\nprint(json.dumps({'summary': 'ok', 'files_touched': ['app.py']}))\n",
        encoding="utf-8",
    )
    (tmp_path / "fail.py").write_text("import sys\nsys.exit(1)\n", encoding="utf-8")
    (tmp_path / "check.py").write_text("print('checked')\n", encoding="utf-8")
    (tmp_path / "directive.md").write_text(DIRECTIVE, encoding="utf-8")
    (tmp_path / "qa.md").write_text(QA_DIRECTIVE, encoding="utf-8")
    plan = tmp_path / "plan.json"
    plan.write_text(
        json.dumps({"feature_request": feature, "tasks": tasks, "testers": testers or {}}),
        encoding="utf-8",
    )
    return plan


def _run_args(tmp_path, plan, *extra):
    return [
        "run",
        "--plan",
        str(plan),
        "--directive",
        str(tmp_path / "directive.md"),
        "--qa-directive",
        str(tmp_path / "qa.md"),
        "--out",
        str(tmp_path / "out"),
        "--cwd",
        str(tmp_path),
        *extra,
    ]


def test_run_writes_handoff_report_and_trace(tmp_path, capsys):
    plan = _write_plan(
        tmp_path,
        [{"id": "build", "mission": "Build it.", "command": f"{PYTHON} ok.py"}],
        testers={"build": f"{PYTHON} check.py"},
    )
    exit_code = main(_run_args(tmp_path, plan))
    assert exit_code == 0

    out = tmp_path / "out"
    handoff = (out / "handoff.md").read_text(encoding="utf-8")
    assert "**Feature Request:** Guided onboarding" in handoff
    assert "- app.py" in handoff
    quality = (out / "quality_report.md").read_text(encoding="utf-8")
    assert "**Status:** SUCCESS" in quality
    payload = json.loads((out / "run.json").read_text(encoding="utf-8"))
    assert payload["handoff"]["tasks"][0]["status"] == "completed"
    assert payload["quality"]["overall_status"] == "SUCCESS"
    assert list((out / "traces").glob("*.json"))
    assert list((out / "metrics").glob("*.jsonl"))

    captured = capsys.readouterr()
    assert "build=completed" in captured.out
    assert "Quality: SUCCESS: All tests passed." in captured.out


def test_run_exit_code_reflects_failed_tasks(tmp_path):
    plan = _write_plan(
        tmp_path,
        [
            {"id": "build", "mission": "Build.", "command": f"{PYTHON} fail.py"},
            {"id": "ship", "mission": "Ship.", "command": f"{PYTHON} ok.py", "dependencies": ["build"]},
        ],
    )
    assert main(_run_args(tmp_path, plan, "--skip-verify")) == 1
    out = tmp_path / "out"
    assert not (out / "quality_report.md").exists()
    payload = json.loads((out / "run.json").read_text(encoding="utf-8"))
    assert payload["quality"] is None
    statuses = {task["id"]: task["status"] for task in payload["handoff"]["tasks"]}
    assert statuses == {"build": "failed", "ship": "blocked"}


def test_run_rejects_invalid_plan(tmp_path, capsys):
    plan = _write_plan(
        tmp_path,
        [{"id": "a", "mission": "m", "command": "true", "dependencies": ["ghost"]}],
    )
    assert main(_run_args(tmp_path, plan)) == 2
    assert "Unknown dependency: ghost" in capsys.readouterr().err


def test_run_requires_commands(tmp_path, capsys):
    plan = _write_plan(tmp_path, [{"id": "a", "mission": "m"}])
    assert main(_run_args(tmp_path, plan)) == 2
    assert "has no command" in capsys.readouterr().err


def test_sections_lists_headings(tmp_path, capsys):
    directive = tmp_path / "directive.md"
    directive.write_text("# Guide\n\n## Core Workflow\n\n### Waves\n", encoding="utf-8")
    assert main(["sections", str(directive)]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "# Guide",
        "- Guide [guide]",
        "  - Core Workflow [core-workflow]",
        "    - Waves [waves]",
    ]
    assert main(["sections", str(directive), "--level", "3"]) == 0
    assert capsys.readouterr().out.splitlines() == ["# Guide", "    - Waves [waves]"]


def test_validate_command(tmp_path, capsys):
    plan = _write_plan(
        tmp_path,
        [
            {"id": "b", "mission": "m", "dependencies": ["a"]},
            {"id": "a", "mission": "m"},
        ],
    )
    assert main(["validate", str(plan)]) == 0
    out = capsys.readouterr().out
    assert "Order: a -> b" in out
    assert "Depth: 2" in out

    broken = _write_plan(tmp_path, [{"id": "a", "mission": "m", "dependencies": ["a"]}])
    assert main(["validate", str(broken)]) == 1
    assert "error: Task a depends on itself" in capsys.readouterr().out


def test_missing_file_is_reported(tmp_path, capsys):
    assert main(["sections", str(tmp_path / "nope.md")]) == 2
    assert "metaagents:" in capsys.readouterr().err


def test_apply_overrides():
    args = parse_args(
        ["run", "--plan", "p", "--directive", "d", "--out", "o", "--task-timeout", "5",
         "--log-level", "debug"]
    )
    settings = apply_overrides(Settings(), args)
    assert settings.workspace_dir == "o"
    assert settings.task_timeout_seconds == 5
    assert settings.tester_timeout_seconds is None
    assert settings.log_level == "DEBUG"


def test_missing_tester_binary_fails_the_item_and_keeps_the_handoff(tmp_path, capsys):
    plan = _write_plan(
        tmp_path,
        [{"id": "a", "mission": "Build.", "command": f"{PYTHON} ok.py"}],
        testers={"a": "definitely-not-a-binary-xyz"},
    )
    assert main(_run_args(tmp_path, plan)) == 1
    out = tmp_path / "out"
    assert (out / "handoff.md").exists()
    quality = (out / "quality_report.md").read_text(encoding="utf-8")
    assert "**Status:** FAILURE" in quality
    assert "Tester command could not be started" in quality
    assert "Quality: FAILURE: 1 tester reported blocking issues." in capsys.readouterr().out


def test_handoff_is_written_before_verification_aborts(tmp_path, capsys):
    (tmp_path / "nostatus.py").write_text(
        "import json\nprint(json.dumps({'findings': 'no status'}))\n", encoding="utf-8"
    )
    plan = _write_plan(
        tmp_path,
        [{"id": "a", "mission": "Build.", "command": f"{PYTHON} ok.py"}],
        testers={"a": f"{PYTHON} nostatus.py"},
    )
    assert main(_run_args(tmp_path, plan)) == 2
    assert "Tester report for qa-a is invalid" in capsys.readouterr().err
    out = tmp_path / "out"
    assert "- app.py" in (out / "handoff.md").read_text(encoding="utf-8")
    assert not (out / "quality_report.md").exists()
    payload = json.loads((out / "run.json").read_text(encoding="utf-8"))
    assert payload["handoff"]["tasks"][0]["status"] == "completed"
    assert payload["quality"] is None
    assert list((out / "traces").glob("*.json"))


def test_extra_plan_is_merged_over_the_plan(tmp_path, capsys):
    plan = _write_plan(
        tmp_path,
        [{"id": "build", "title": "Build", "mission": "Build.", "command": f"{PYTHON} ok.py"}],
    )
    extra = tmp_path / "extra.json"
    extra.write_text(
        json.dumps(
            {
                "tasks": [
                    {"id": "build", "mission": "Build again.", "dependencies": ["lint"]},
                    {"id": "lint", "mission": "Lint.", "command": f"{PYTHON} ok.py"},
                ],
                "testers": {"build": f"{PYTHON} check.py", "lint": f"{PYTHON} check.py"},
            }
        ),
        encoding="utf-8",
    )
    assert main(["validate", str(plan), "--extra-plan", str(extra)]) == 0
    assert "Order: lint -> build" in capsys.readouterr().out

    assert main(_run_args(tmp_path, plan, "--extra-plan", str(extra))) == 0
    payload = json.loads((tmp_path / "out" / "run.json").read_text(encoding="utf-8"))
    tasks = {task["id"]: task for task in payload["handoff"]["tasks"]}
    assert tasks["build"]["title"] == "Build"
    assert tasks["build"]["mission"] == "Build again."
    assert tasks["build"]["dependencies"] == ["lint"]
    assert payload["quality"]["overall_status"] == "SUCCESS"
