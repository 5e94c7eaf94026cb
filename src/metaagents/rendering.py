"""Markdown renderers for the handoff and quality report documents.

Every function here is pure: identical inputs give byte-identical output.
"""

from __future__ import annotations

from typing import Sequence

from metaagents.directive import Directive
from metaagents.quality import AggregatedReport, OverallStatus, VerificationPlan
from metaagents.tasks import Handoff, TaskState

HANDOFF_TRAILER = "Generated by the Architect meta-agent orchestration engine."
QUALITY_TRAILER = "Generated by the Quasar meta-agent orchestration engine."


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _directive_reference(lines: list[str], directive: Directive, heading: str) -> None:
    section = directive.find_section(heading)
    if section is None:
        return
    lines.append(f"## Directive Reference: {heading}")
    lines.append("")
    lines.append(section.content)
    lines.append("")


def render_handoff_document(
    feature_request: str,
    directive: Directive,
    tasks: Sequence[TaskState],
    files: Sequence[str],
    reference_section: str = "Output & Handoff",
) -> str:
    lines: list[str] = [
        "# Development Summary & Handoff",
        "",
        f"**Feature Request:** {feature_request}",
        f"**Architect Directive:** {directive.title}",
        "",
        "## Sub-Agent Missions",
    ]
    for task in tasks:
        lines.append(f"- **{task.title}** (`{task.id}`): {task.mission}")
    lines.append("")

    lines.append("## Execution Results")
    for task in tasks:
        output = task.output
        lines.append(f"### {task.title} (`{task.id}`)")
        lines.append(f"- Status: {task.status.upper()}")
        if output is not None:
            lines.append(f"- Summary: {output.summary}")
            if output.details:
                lines.append(f"- Details: {output.details}")
            if output.files_touched:
                lines.append(f"- Files: {', '.join(output.files_touched)}")
            if output.artifacts:
                lines.append("- Artifacts:")
                for name, description in output.artifacts.items():
                    lines.append(f"  - {name}: {description}")
            if output.notes:
                lines.append(f"- Notes: {output.notes}")
        if task.error:
            lines.append(f"- Error: {task.error}")
        lines.append("")

    lines.append("## Files Modified")
    if files:
        lines.extend(f"- {path}" for path in files)
    else:
        lines.append("- (none reported)")
    lines.append("")

    _directive_reference(lines, directive, reference_section)

    lines.append("---")
    lines.append(HANDOFF_TRAILER)
    return "\n".join(lines)


def resolve_overall_status(reports: Sequence[AggregatedReport]) -> OverallStatus:
    if any(report.status == "fail" for report in reports):
        return "FAILURE"
    if any(report.status == "skipped" for report in reports):
        return "PARTIAL"
    return "SUCCESS"


def compose_summary(overall_status: OverallStatus, reports: Sequence[AggregatedReport]) -> str:
    if overall_status == "FAILURE":
        failures = sum(1 for report in reports if report.status == "fail")
        return f"FAILURE: {_plural(failures, 'tester')} reported blocking issues."
    if overall_status == "PARTIAL":
        skipped = sum(1 for report in reports if report.status == "skipped")
        return f"PARTIAL: {_plural(skipped, 'tester')} skipped. Review findings before release."
    return "SUCCESS: All tests passed."


def render_quality_report(
    overall_status: OverallStatus,
    summary: str,
    handoff: Handoff,
    plan: VerificationPlan,
    reports: Sequence[AggregatedReport],
    directive: Directive,
    reference_section: str = "Core Workflow",
    excerpt_chars: int = 2000,
) -> str:
    lines: list[str] = [
        "# Global Quality Report",
        "",
        f"**Overall Summary:** {summary}",
        f"**Status:** {overall_status}",
        "",
        "## Development Context",
        f"- Feature Request: {handoff.feature_request}",
        f"- Architect Directive: {handoff.directive_title}",
        "",
        "## Test Plan Overview",
    ]
    for item in plan.items:
        focus = ", ".join(item.focus_areas) if item.focus_areas else "general quality"
        lines.append(f"- {item.title} (focus: {focus})")
    lines.append("")

    lines.append("## Tester Findings")
    for report in reports:
        lines.append(f"### {report.title}")
        lines.append(f"- Mission: {report.mission}")
        lines.append(f"- Status: {report.status.upper()}")
        lines.append(f"- Findings: {report.findings or 'No findings recorded.'}")
        if report.defects:
            lines.append("- Defects:")
            lines.extend(f"  - {defect}" for defect in report.defects)
        if report.evidence:
            lines.append(f"- Evidence: {report.evidence}")
        lines.append("")

    defects = [defect for report in reports for defect in report.defects]
    lines.append("## Aggregated Defects")
    if defects:
        lines.extend(f"- {defect}" for defect in defects)
    else:
        lines.append("- None reported.")
    lines.append("")

    _directive_reference(lines, directive, reference_section)

    lines.append("## Architect Handoff Summary")
    lines.append(
        "The following excerpt captures the development summary provided by the Architect:"
    )
    lines.append("")
    lines.append("```markdown")
    lines.append(handoff.handoff_document[:excerpt_chars])
    lines.append("```")
    lines.append("")
    lines.append("---")
    lines.append(QUALITY_TRAILER)
    return "\n".join(lines)
