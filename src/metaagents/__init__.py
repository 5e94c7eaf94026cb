"""Meta-agent orchestration: dependency-ordered task runs and quality verification."""

from metaagents.architect import ArchitectOrchestrator
from metaagents.directive import (
    Directive,
    DirectiveSection,
    find_directive_section,
    list_directive_headings,
    parse_directive,
    slugify_heading,
)
from metaagents.quality import (
    GlobalQualityReport,
    TesterExecutor,
    TesterReport,
    VerificationPlan,
    VerificationPlanItem,
)
from metaagents.quasar import QuasarOrchestrator
from metaagents.tasks import Handoff, TaskDefinition, TaskExecutor, TaskOutput, TaskState

__all__ = [
    "ArchitectOrchestrator",
    "Directive",
    "DirectiveSection",
    "GlobalQualityReport",
    "Handoff",
    "QuasarOrchestrator",
    "TaskDefinition",
    "TaskExecutor",
    "TaskOutput",
    "TaskState",
    "TesterExecutor",
    "TesterReport",
    "VerificationPlan",
    "VerificationPlanItem",
    "find_directive_section",
    "list_directive_headings",
    "parse_directive",
    "slugify_heading",
]
