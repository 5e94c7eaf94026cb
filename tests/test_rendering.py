from metaagents.directive import parse_directive
from metaagents.quality import AggregatedReport, VerificationPlan, VerificationPlanItem
from metaagents.rendering import (
    HANDOFF_TRAILER,
    QUALITY_TRAILER,
    compose_summary,
    render_handoff_document,
    render_quality_report,
    resolve_overall_status,
)
from metaagents.tasks import Handoff, TaskOutput, TaskState

DIRECTIVE = parse_directive(
    "# Guide\n\n## Output & Handoff\n\nList every file.\n\n## Core Workflow\n\nVerify all.\n"
)


def _tasks():
    return [
        TaskState(
            id="ui",
            title="UI",
            mission="Build screens.",
            status="completed",
            output=TaskOutput(
                summary="Screens done.",
                details="Three steps.",
                files_touched=["ui.tsx"],
                artifacts={"storybook": "Stories"},
                notes="Needs copy review.",
            ),
        ),
        TaskState(
            id="api",
            title="API",
            mission="Expose endpoints.",
            dependencies=["ui"],
            status="blocked",
            error='Blocked by dependency "ui"',
        ),
    ]


def _report(item_id, status, defects=None, findings=""):
    return AggregatedReport(
        plan_item_id=item_id,
        title=f"{item_id} QA",
        mission="Check it.",
        status=status,
        findings=findings,
        defects=list(defects or []),
    )


def test_handoff_document_sections():
    document = render_handoff_document("Onboarding", DIRECTIVE, _tasks(), ["ui.tsx"])
    assert document.startswith("# Development Summary & Handoff\n\n**Feature Request:** Onboarding")
    assert "**Architect Directive:** Guide" in document
    assert "- **UI** (`ui`): Build screens." in document
    assert "### API (`api`)\n- Status: BLOCKED\n- Error: Blocked by dependency \"ui\"" in document
    assert "- Details: Three steps." in document
    assert "- Artifacts:\n  - storybook: Stories" in document
    assert "- Notes: Needs copy review." in document
    assert "## Files Modified\n- ui.tsx" in document
    assert "## Directive Reference: Output & Handoff\n\nList every file." in document
    assert document.endswith("---\n" + HANDOFF_TRAILER)


def test_handoff_document_is_deterministic_and_handles_no_files():
    first = render_handoff_document("Onboarding", DIRECTIVE, _tasks(), [])
    second = render_handoff_document("Onboarding", DIRECTIVE, _tasks(), [])
    assert first == second
    assert "## Files Modified\n- (none reported)" in first


def test_missing_reference_section_is_omitted():
    directive = parse_directive("# Bare\n\nNothing else.\n")
    document = render_handoff_document("x", directive, _tasks(), [])
    assert "Directive Reference" not in document


def test_overall_status_precedence():
    assert resolve_overall_status([_report("a", "pass")]) == "SUCCESS"
    assert resolve_overall_status([]) == "SUCCESS"
    assert resolve_overall_status([_report("a", "pass"), _report("b", "skipped")]) == "PARTIAL"
    assert (
        resolve_overall_status([_report("a", "skipped"), _report("b", "fail")]) == "FAILURE"
    )


def test_summary_counts():
    reports = [_report("a", "skipped"), _report("b", "skipped")]
    assert compose_summary("PARTIAL", reports) == (
        "PARTIAL: 2 testers skipped. Review findings before release."
    )
    assert compose_summary("FAILURE", [_report("a", "fail")]) == (
        "FAILURE: 1 tester reported blocking issues."
    )


def test_quality_report_layout_and_excerpt():
    tasks = _tasks()
    handoff_document = "H" * 50
    handoff = Handoff(
        feature_request="Onboarding",
        directive_title="Guide",
        tasks=tasks,
        files_touched=["ui.tsx"],
        handoff_document=handoff_document,
    )
    plan = VerificationPlan(
        feature_request="Onboarding",
        directive_title="QA Guide",
        items=[
            VerificationPlanItem(
                id="qa-ui", title="UI QA", mission="m", target_task_id="ui", focus_areas=["ui.tsx"]
            ),
            VerificationPlanItem(id="qa-api", title="API QA", mission="m", target_task_id="api"),
        ],
    )
    reports = [
        _report("qa-ui", "fail", ["Button misaligned."], "Layout broken."),
        _report("qa-api", "skipped"),
    ]
    markdown = render_quality_report(
        "FAILURE", "FAILURE: 1 tester reported blocking issues.", handoff, plan, reports,
        DIRECTIVE, excerpt_chars=10,
    )
    assert markdown == render_quality_report(
        "FAILURE", "FAILURE: 1 tester reported blocking issues.", handoff, plan, reports,
        DIRECTIVE, excerpt_chars=10,
    )
    assert markdown.startswith("# Global Quality Report\n\n**Overall Summary:** FAILURE")
    assert "**Status:** FAILURE" in markdown
    assert "- Architect Directive: Guide" in markdown
    assert "- UI QA (focus: ui.tsx)" in markdown
    assert "- API QA (focus: general quality)" in markdown
    assert "- Findings: Layout broken." in markdown
    assert "- Findings: No findings recorded." in markdown
    assert "## Aggregated Defects\n- Button misaligned." in markdown
    assert "## Directive Reference: Core Workflow\n\nVerify all." in markdown
    assert "```markdown\n" + "H" * 10 + "\n```" in markdown
    assert markdown.endswith("---\n" + QUALITY_TRAILER)
