"""Pydantic models for evaluation jobs and their results."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from designcoach.models.enums import (
    ActionPriority,
    BottleneckSeverity,
    EventSeverity,
    FailureInjectionMode,
    JobKind,
    JobStatus,
)


class CategoryScore(BaseModel):
    """One rubric category as scored by the grading worker."""

    model_config = ConfigDict(extra="ignore")

    category: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=100)
    weight: float | None = Field(None, ge=0, le=100)
    max_score: float = Field(100, ge=1, le=100)
    rationale: str = ""
    evidence: list[str] = Field(default_factory=list)


class ActionItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    priority: ActionPriority
    title: str
    description: str
    evidence: list[str] = Field(default_factory=list)


class SimulationMetrics(BaseModel):
    model_config = ConfigDict(extra="ignore")

    peak_rps: float = Field(..., ge=0)
    capacity_rps: float = Field(..., ge=0)
    throughput_rps: float = Field(..., ge=0)
    p50_latency_ms: float = Field(..., ge=0)
    p95_latency_ms: float = Field(..., ge=0)
    error_rate_percent: float = Field(..., ge=0, le=100)
    saturated: bool


class Bottleneck(BaseModel):
    model_config = ConfigDict(extra="ignore")

    component_id: str = Field(..., min_length=1)
    component_label: str = Field(..., min_length=1)
    component_type: str
    utilization_percent: float = Field(..., ge=0)
    required_rps: float = Field(..., ge=0)
    capacity_rps: float = Field(..., ge=0)
    severity: BottleneckSeverity
    reason: str = ""


class FailureInjectionProfile(BaseModel):
    """A fault to replay against a completed baseline run.

    Each mode requires its own parameter: a target component for node-down
    and dependency-lag, a lag for dependency-lag, an AZ for az-down and a
    multiplier for traffic-surge.
    """

    model_config = ConfigDict(extra="ignore")

    mode: FailureInjectionMode
    target_component_id: str | None = Field(None, min_length=1, max_length=200)
    az_name: Literal["az-a", "az-b"] | None = None
    lag_ms: int | None = Field(None, ge=50, le=5000)
    surge_multiplier: float | None = Field(None, ge=1.1, le=10)

    @model_validator(mode="after")
    def _require_mode_parameters(self) -> "FailureInjectionProfile":
        if self.mode.targets_component and not self.target_component_id:
            raise ValueError(f"target_component_id is required for {self.mode.value} mode")
        if self.mode == FailureInjectionMode.DEPENDENCY_LAG and not self.lag_ms:
            raise ValueError("lag_ms is required for dependency-lag mode")
        if self.mode == FailureInjectionMode.TRAFFIC_SURGE and not self.surge_multiplier:
            raise ValueError("surge_multiplier is required for traffic-surge mode")
        if self.mode == FailureInjectionMode.AZ_DOWN and not self.az_name:
            raise ValueError("az_name is required for az-down mode")
        return self


class FailureImpactComponent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    component_id: str = Field(..., min_length=1)
    component_label: str = Field(..., min_length=1)
    component_type: str
    severity: BottleneckSeverity
    reason: str = ""


class BlastRadiusSummary(BaseModel):
    """Worker-computed impact of an injected failure."""

    model_config = ConfigDict(extra="ignore")

    mode: FailureInjectionMode
    impacted_components: list[FailureImpactComponent] = Field(default_factory=list)
    impacted_count: int = Field(..., ge=0)
    critical_count: int = Field(..., ge=0)
    estimated_user_impact_percent: float = Field(..., ge=0, le=100)
    summary: str = ""


class FailureInjectionRequest(BaseModel):
    profile: FailureInjectionProfile


class TimelineEvent(BaseModel):
    sequence: int = Field(..., ge=0)
    at_second: int = Field(..., ge=0)
    severity: EventSeverity
    title: str
    description: str
    component_id: str | None = None


class EvaluationJob(BaseModel):
    """Lifecycle fields common to every evaluation kind."""

    id: str
    kind: JobKind
    project_id: str
    version_id: str
    status: JobStatus
    failure_reason: str | None = None
    queued_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GradeReport(EvaluationJob):
    kind: JobKind = JobKind.GRADE
    overall_score: int | None = None
    summary: str | None = None
    strengths: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    deterministic_notes: list[str] = Field(default_factory=list)
    category_scores: list[CategoryScore] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)
    ai_provider: str | None = None
    ai_model: str | None = None


class SimulationRun(EvaluationJob):
    kind: JobKind = JobKind.SIMULATE
    baseline_run_id: str | None = None
    failure_profile: FailureInjectionProfile | None = None
    blast_radius: BlastRadiusSummary | None = None
    metrics: SimulationMetrics | None = None
    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    events: list[TimelineEvent] = Field(default_factory=list)


class GradeResultPayload(BaseModel):
    """Result body a grading worker reports on completion."""

    model_config = ConfigDict(extra="ignore")

    overall_score: int | None = Field(None, ge=0, le=100)
    summary: str | None = None
    strengths: Any = Field(default_factory=list)
    risks: Any = Field(default_factory=list)
    deterministic_notes: Any = Field(default_factory=list)
    category_scores: Any = Field(default_factory=list)
    action_items: Any = Field(default_factory=list)
    ai_provider: str | None = None
    ai_model: str | None = None


class SimulationResultPayload(BaseModel):
    """Result body a simulation worker reports on completion."""

    model_config = ConfigDict(extra="ignore")

    metrics: Any = None
    bottlenecks: Any = Field(default_factory=list)
    blast_radius: Any = None
    timeline: list[dict[str, Any]] = Field(default_factory=list)


class JobFailurePayload(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class SharedReportExport(BaseModel):
    export_id: str
    project_id: str
    file_name: str
    download_path: str
    created_at: datetime


class SharedReport(BaseModel):
    export: SharedReportExport
    snapshot: dict[str, Any] = Field(default_factory=dict)
    report: GradeReport
