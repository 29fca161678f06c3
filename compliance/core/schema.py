from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, confloat, conint, field_validator

from compliance.core.timeutils import parse_instant

SEVERITY_RANK: dict[str, int] = {
    "red": 3,
    "amber": 2,
    "green": 1,
}

RiskLevel = Literal["low", "medium", "high", "critical"]
Trend = Literal["improving", "worsening", "stable"]
WarningLevel = Literal[1, 2, 3]
ColorCode = Literal["amber", "orange", "red"]
ButtonSeverity = Literal["primary", "secondary", "destructive"]
SuggestionSeverity = Literal["high", "medium", "low"]
Complexity = Literal["low", "medium", "high"]
BottleneckStage = Literal["preparation", "approval", "overall"]
HeatmapStatus = Literal["good", "average", "poor"]

Metric = confloat(ge=0, le=100)


class ProgressRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    contractor_id: str
    contractor_name: str
    doc_type_id: str
    doc_type_name: str
    doc_type_code: str | None = None
    category: str | None = None
    is_critical: bool = False
    required_count: conint(ge=0) = 0
    approved_count: conint(ge=0) = 0
    planned_due_date: datetime | None = None
    status_color: str = "unknown"
    first_started_at: datetime | None = None
    first_submitted_at: datetime | None = None
    first_approved_at: datetime | None = None

    @field_validator(
        "planned_due_date",
        "first_started_at",
        "first_submitted_at",
        "first_approved_at",
        mode="before",
    )
    @classmethod
    def _coerce_instant(cls, value: Any) -> datetime | None:
        return parse_instant(value)

    @field_validator("status_color", mode="before")
    @classmethod
    def _normalise_color(cls, value: Any) -> str:
        if value is None:
            return "unknown"
        if not isinstance(value, str):
            raise ValueError("status_color must be a string")
        return value.strip().lower() or "unknown"


def severity_rank(status_color: str) -> int:
    return SEVERITY_RANK.get(status_color, 0)


class KpiSummary(BaseModel):
    """Per-contractor figures precomputed by the reporting view."""

    model_config = ConfigDict(frozen=True)

    contractor_id: str
    contractor_name: str
    completion_ratio: confloat(ge=0) = 0.0
    must_have_ready_ratio: confloat(ge=0) = 0.0
    avg_prep_days: float = 0.0
    avg_approval_days: float = 0.0
    red_items: conint(ge=0) = 0
    quality_score: float | None = None
    speed_score: float | None = None


class FilterState(BaseModel):
    model_config = ConfigDict(frozen=True)

    contractor: str = "all"
    category: str = "all"
    search: str | None = None


class KpiSet(BaseModel):
    overall_completion: int = 0
    must_have_ready: int = 0
    overdue_must_haves: int = 0
    avg_prep_days: int = 0
    avg_approval_days: int = 0


class AlertItem(ProgressRecord):
    overdue_days: conint(ge=0) = 0
    due_in_days: conint(ge=0) | None = None


class ActionButton(BaseModel):
    label: str
    action: str
    severity: ButtonSeverity


class RedCardItem(AlertItem):
    warning_level: WarningLevel
    progress_percentage: int
    risk_score: conint(ge=0, le=100)
    color_code: ColorCode
    recommended_actions: list[str] = Field(default_factory=list)
    action_buttons: list[ActionButton] = Field(default_factory=list)


class RedCardsByLevel(BaseModel):
    level1: list[RedCardItem] = Field(default_factory=list)
    level2: list[RedCardItem] = Field(default_factory=list)
    level3: list[RedCardItem] = Field(default_factory=list)
    all: list[RedCardItem] = Field(default_factory=list)


class RedCardStatistics(BaseModel):
    total: int = 0
    level1_count: int = 0
    level2_count: int = 0
    level3_count: int = 0
    high_risk_count: int = 0
    contractors_affected: int = 0
    average_risk_score: int = 0


class RedCardSummary(BaseModel):
    total: int = 0
    missing: int = 0
    overdue: int = 0
    contractors_cant_start: int = 0


class SnapshotItem(AlertItem):
    progress_percent: int
    severity_rank: int


class ActionSuggestion(BaseModel):
    id: str
    contractor_id: str
    contractor_name: str
    severity: SuggestionSeverity
    message: str
    related_documents: list[str] = Field(default_factory=list)


class ProcessingTimeStats(BaseModel):
    contractor_id: str
    contractor_name: str
    average_prep_days: float | None = None
    longest_prep_days: int | None = None
    average_approval_days: float | None = None
    longest_approval_days: int | None = None


class DocumentTypeProcessingTime(BaseModel):
    doc_type_id: str
    doc_type_name: str
    doc_type_code: str | None = None
    category: str | None = None
    average_prep_days: float = 0.0
    average_approval_days: float = 0.0
    average_total_days: float = 0.0
    complexity: Complexity = "low"
    sample_size: int = 0
    optimization_potential: int = 0
    recommendations: list[str] = Field(default_factory=list)


class BottleneckAnalysis(BaseModel):
    stage: BottleneckStage
    severity: RiskLevel
    average_delay: float = 0.0
    affected_items: int = 0
    total_items: int = 0
    impact_percentage: int = 0
    root_causes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    estimated_savings: int = 0


class ApprovalTimeComparison(BaseModel):
    current: int = 0
    last_week: int = 0


class DocumentTotals(BaseModel):
    approved: int = 0
    required: int = 0


class CategoryProgress(BaseModel):
    category: str
    approved: int
    required: int
    completion: int


class ContractorCategoryProgress(BaseModel):
    contractor_id: str
    contractor_name: str
    category_name: str
    approved: int
    required: int
    completion_percentage: int


class ContractorPerformanceScore(BaseModel):
    contractor_id: str
    contractor_name: str
    completion: int
    quality: int
    speed: int
    compliance: int
    weighted_score: int
    rank: int = 0


class HeatmapCell(BaseModel):
    contractor_id: str
    contractor_name: str
    doc_type_id: str
    doc_type_name: str
    value: int
    status: HeatmapStatus
    approved: int
    required: int


class MilestoneProgress(BaseModel):
    id: str
    contractor_id: str
    contractor_name: str
    doc_type_id: str
    doc_type_name: str
    planned_date: datetime
    start_date: datetime
    end_date: datetime
    completion_percentage: int
    status_color: str
    approved_count: int
    required_count: int


class ContractorMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    completion: Metric
    quality: Metric
    compliance: Metric
    timeline: Metric


class HistoricalSample(ContractorMetrics):
    recorded_at: datetime

    @field_validator("recorded_at", mode="before")
    @classmethod
    def _coerce_recorded_at(cls, value: Any) -> datetime:
        parsed = parse_instant(value)
        if parsed is None:
            raise ValueError("recorded_at is required")
        return parsed


class ContractorRiskInput(BaseModel):
    id: str
    name: str
    current_metrics: ContractorMetrics
    historical_data: list[HistoricalSample] = Field(default_factory=list)


class FactorRisks(BaseModel):
    completion: float = 0.0
    quality: float = 0.0
    compliance: float = 0.0
    timeline: float = 0.0

    @property
    def total(self) -> float:
        return self.completion + self.quality + self.compliance + self.timeline


class ContractorRiskProfile(BaseModel):
    contractor_id: str
    contractor_name: str
    metrics: ContractorMetrics
    factor_risks: FactorRisks
    risk_score: conint(ge=0, le=100)
    risk_level: RiskLevel
    bottlenecks: list[str] = Field(default_factory=list, max_length=2)
    predicted_completion: conint(ge=0, le=100)
    predicted_date: date
    estimated_resources: Literal["High", "Medium", "Low"]
    trend: Trend = "stable"


class DashboardView(BaseModel):
    """Everything the presentation layer needs for one filter selection."""

    filters: FilterState
    evaluated_at: datetime
    kpis: KpiSet
    red_cards: list[AlertItem] = Field(default_factory=list)
    amber_alerts: list[AlertItem] = Field(default_factory=list)
    snapshot: list[SnapshotItem] = Field(default_factory=list)
    categories: list[CategoryProgress] = Field(default_factory=list)
    red_card_summary: RedCardSummary = Field(default_factory=RedCardSummary)
