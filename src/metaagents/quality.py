"""Verification plan and quality report models."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

TesterStatus = Literal["pass", "fail", "skipped"]
OverallStatus = Literal["SUCCESS", "FAILURE", "PARTIAL"]
TESTER_STATUSES: tuple[str, ...] = ("pass", "fail", "skipped")


class VerificationPlanItem(BaseModel):
    id: str
    title: str
    mission: str
    target_task_id: str
    related_files: list[str] = Field(default_factory=list)
    focus_areas: list[str] = Field(default_factory=list)


class VerificationPlan(BaseModel):
    feature_request: str
    directive_title: str
    items: list[VerificationPlanItem] = Field(default_factory=list)

    def get_item(self, item_id: str) -> VerificationPlanItem | None:
        return next((item for item in self.items if item.id == item_id), None)


class TesterReport(BaseModel):
    status: TesterStatus
    findings: str | None = ""
    defects: list[str] | None = None
    evidence: str | None = None


class AggregatedReport(BaseModel):
    plan_item_id: str
    title: str
    mission: str
    status: TesterStatus
    findings: str = ""
    defects: list[str] = Field(default_factory=list)
    evidence: str | None = None


class GlobalQualityReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_status: OverallStatus
    summary: str
    feature_request: str
    plan: VerificationPlan
    reports: list[AggregatedReport]
    markdown: str

    def defects(self) -> list[str]:
        return [defect for report in self.reports for defect in report.defects]

    def get_report(self, plan_item_id: str) -> AggregatedReport | None:
        return next(
            (report for report in self.reports if report.plan_item_id == plan_item_id),
            None,
        )


TesterResult = Union[TesterReport, Mapping[str, Any], None]


class TesterExecutor(ABC):
    """Strategy that evaluates one verification plan item."""

    @abstractmethod
    async def run(self, item: VerificationPlanItem) -> TesterResult:
        raise NotImplementedError


class CallableTesterExecutor(TesterExecutor):
    def __init__(
        self, func: Callable[[VerificationPlanItem], TesterResult | Awaitable[TesterResult]]
    ) -> None:
        self.func = func

    async def run(self, item: VerificationPlanItem) -> TesterResult:
        result = self.func(item)
        if inspect.isawaitable(result):
            result = await result
        return result


def as_tester_executor(tester: Any) -> TesterExecutor | None:
    if isinstance(tester, TesterExecutor):
        return tester
    if callable(tester):
        return CallableTesterExecutor(tester)
    return None
