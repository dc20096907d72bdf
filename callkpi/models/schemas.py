"""
Pydantic request/response models for the CallKPI backend.

This module provides type-safe data models for every stage of the KPI pipeline:
policy configuration, summary and per-agent KPI snapshots, insights, recommended
tasks, outcome estimates, daily trend points, data issues, and the API request
and response envelopes.

Field names are camelCase because the models are the dashboard contract: they
are serialized as-is to the presentation layer.

All models use Pydantic v2 syntax.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from callkpi.models.enums import (
    DataIssueType,
    DueBucket,
    ImpactConfidence,
    InsightLevel,
    InsightSource,
    Lens,
    MetricStatus,
    RangeKey,
    Scope,
    SlaMode,
    TaskPriority,
)


# =============================================================================
# Policy
# =============================================================================


class PolicyOverrides(BaseModel):
    """
    Partial policy supplied by a caller.

    Every field is optional; only the fields that are set replace the
    configured defaults.
    """
    minSampleCalls: Optional[int] = Field(default=None, ge=0)
    csatTarget: Optional[float] = Field(default=None, ge=0, le=100)
    ahtTargetSec: Optional[float] = Field(default=None, ge=0)
    ahtTooLowSec: Optional[float] = Field(default=None, ge=0)
    ahtTooHighSec: Optional[float] = Field(default=None, ge=0)
    lowCsatAgentThreshold: Optional[float] = Field(default=None, ge=0, le=100)


class Policy(BaseModel):
    """
    Threshold configuration for the insight rules and the task mapper.

    Attributes:
        minSampleCalls: Eligibility floor (calls/rows) before a rule or task fires.
        csatTarget: Target CSAT percentage.
        ahtTargetSec: Target average handle time in seconds.
        ahtTooLowSec: AHT below this is treated as rushed.
        ahtTooHighSec: AHT above this is treated as slow.
        lowCsatAgentThreshold: Agent CSAT under this gets a coaching task.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "minSampleCalls": 30,
                "csatTarget": 85,
                "ahtTargetSec": 300,
                "ahtTooLowSec": 240,
                "ahtTooHighSec": 330,
                "lowCsatAgentThreshold": 80,
            }
        }
    )

    minSampleCalls: int = Field(default=30, ge=0)
    csatTarget: float = Field(default=85.0, ge=0, le=100)
    ahtTargetSec: float = Field(default=300.0, ge=0)
    ahtTooLowSec: float = Field(default=240.0, ge=0)
    ahtTooHighSec: float = Field(default=330.0, ge=0)
    lowCsatAgentThreshold: float = Field(default=80.0, ge=0, le=100)

    @classmethod
    def from_settings(cls, settings: Any) -> "Policy":
        """Build the default policy from application settings."""
        return cls(
            minSampleCalls=settings.min_sample_calls,
            csatTarget=settings.csat_target,
            ahtTargetSec=settings.aht_target_sec,
            ahtTooLowSec=settings.aht_too_low_sec,
            ahtTooHighSec=settings.aht_too_high_sec,
            lowCsatAgentThreshold=settings.low_csat_agent_threshold,
        )

    def with_overrides(self, overrides: Optional[PolicyOverrides]) -> "Policy":
        """Return a copy with every non-null override applied."""
        if overrides is None:
            return self
        return self.model_copy(update=overrides.model_dump(exclude_none=True))


# =============================================================================
# KPI Snapshots
# =============================================================================


class MetricSnapshot(BaseModel):
    """
    Uniform view of one categorical metric (FCR, SLA or Escalation).

    resolvedOrMetCount is null for SLA in percent-mean mode, where the rate
    is an average of percentages and no per-row outcome exists.
    """
    rate: Optional[float] = None
    eligibleCount: int = 0
    resolvedOrMetCount: Optional[int] = 0
    unknownCount: int = 0
    status: MetricStatus = MetricStatus.MISSING_COLUMNS
    definition: str = ""


class Summary(BaseModel):
    """
    Aggregate KPI snapshot over a row set.

    Numeric fields are either a number or an explicit null, never absent.
    Rates are percentages rounded to one decimal.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rowCount": 40,
                "totalCalls": 40,
                "avgCsat": 80.0,
                "avgAht": 312.5,
                "fcrRate": 75.0,
                "fcrEligibleCount": 36,
                "fcrResolvedCount": 27,
                "fcrUnknownCount": 4,
                "fcrStatus": "ok",
                "slaRate": None,
                "slaMode": "none",
                "slaStatus": "missing_columns",
                "escalationRate": 8.3,
                "escalationStatus": "ok",
            }
        }
    )

    rowCount: int = Field(default=0, ge=0)
    totalCalls: int = Field(default=0, ge=0)

    avgCsat: Optional[float] = None
    avgAht: Optional[float] = None

    fcrRate: Optional[float] = None
    fcrEligibleCount: int = 0
    fcrResolvedCount: int = 0
    fcrUnknownCount: int = 0
    fcrStatus: MetricStatus = MetricStatus.MISSING_COLUMNS
    fcrDefinition: str = ""

    slaRate: Optional[float] = None
    slaMode: SlaMode = SlaMode.NONE
    slaEligibleCount: int = 0
    slaMetCount: Optional[int] = 0
    slaUnknownCount: int = 0
    slaStatus: MetricStatus = MetricStatus.MISSING_COLUMNS
    slaDefinition: str = ""

    escalationRate: Optional[float] = None
    escalationEligibleCount: int = 0
    escalationCount: int = 0
    escalationUnknownCount: int = 0
    escalationStatus: MetricStatus = MetricStatus.MISSING_COLUMNS
    escalationDefinition: str = ""

    def metric(self, name: str) -> MetricSnapshot:
        """
        Return the uniform snapshot for `fcr`, `sla` or `escalation`.

        Raises:
            KeyError: If the metric name is not one of the three.
        """
        key = name.lower()
        if key == "fcr":
            return MetricSnapshot(
                rate=self.fcrRate,
                eligibleCount=self.fcrEligibleCount,
                resolvedOrMetCount=self.fcrResolvedCount,
                unknownCount=self.fcrUnknownCount,
                status=self.fcrStatus,
                definition=self.fcrDefinition,
            )
        if key == "sla":
            return MetricSnapshot(
                rate=self.slaRate,
                eligibleCount=self.slaEligibleCount,
                resolvedOrMetCount=self.slaMetCount,
                unknownCount=self.slaUnknownCount,
                status=self.slaStatus,
                definition=self.slaDefinition,
            )
        if key == "escalation":
            return MetricSnapshot(
                rate=self.escalationRate,
                eligibleCount=self.escalationEligibleCount,
                resolvedOrMetCount=self.escalationCount,
                unknownCount=self.escalationUnknownCount,
                status=self.escalationStatus,
                definition=self.escalationDefinition,
            )
        raise KeyError(f"Unknown metric: {name}")


class AgentStat(Summary):
    """KPI snapshot scoped to one agent identity."""
    agentName: str = Field(..., description="Raw agent name as found in the rows")


class DailyKpi(BaseModel):
    """One point of the daily KPI trend."""
    date: str = Field(..., description="Calendar day, YYYY-MM-DD")
    rowCount: int = 0
    avgCsat: Optional[float] = None
    avgAht: Optional[float] = None
    fcrRate: Optional[float] = None
    escalationRate: Optional[float] = None


class CsatBucket(BaseModel):
    """
    One band of the CSAT distribution.

    Attributes:
        label: Band name (Low, Mid or High).
        lowerBound: Inclusive lower edge; null for the open-ended lowest band.
        upperBound: Exclusive upper edge; null for the open-ended highest band.
        count: Rows whose CSAT falls in the band.
        share: Percentage of rows with a readable CSAT; null when there are none.
    """
    label: str
    lowerBound: Optional[float] = None
    upperBound: Optional[float] = None
    count: int = 0
    share: Optional[float] = None


# =============================================================================
# Insights and Tasks
# =============================================================================


class Insight(BaseModel):
    """
    A human-readable finding.

    The id is deterministic for a given scope, topic and window so the same
    condition yields the same id on every run. `boost` only affects ordering.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "ins_center_csat_low_today",
                "level": "warn",
                "title": "CSAT is low (center)",
                "why": "Average CSAT is 80.0%, below the target (85%).",
                "impact": "Lower satisfaction drives repeat contacts and churn risk.",
                "scope": "center",
                "who": "center",
                "window": "today",
                "metrics": {"CSAT": 80.0},
                "source": "rule",
                "boost": 0,
            }
        }
    )

    id: Optional[str] = None
    level: InsightLevel = InsightLevel.INFO
    title: str = ""
    why: str = ""
    impact: Optional[str] = None
    scope: Scope = Scope.CENTER
    who: str = "center"
    window: RangeKey = RangeKey.TODAY
    metrics: Optional[Dict[str, Optional[float]]] = None
    lens: Optional[Lens] = None
    source: InsightSource = InsightSource.RULE
    boost: int = Field(default=0, ge=0)


class TaskImpact(BaseModel):
    """Estimated CSAT gain (percentage points) from completing a task."""
    csatDelta: float = 0.0
    confidence: ImpactConfidence = ImpactConfidence.LOW


class RecommendedTask(BaseModel):
    """
    A concrete remediation task.

    relatedInsightIds and impact are null until the insight-task linker has
    run; explicit values set upstream are kept as-is.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "center_csat_review10_3f9a1c2e",
                "scope": "center",
                "title": "CSAT drop: review 10 calls and tag root causes",
                "why": "Average CSAT is 80.0% (target 85%).",
                "steps": ["Pick 10 recent calls"],
                "due": "today",
                "effortMin": 45,
                "priority": "P0",
                "relatedInsightIds": ["csat_low_center"],
                "impact": {"csatDelta": 1.2, "confidence": "low"},
            }
        }
    )

    id: str
    scope: Scope
    title: str
    why: str = ""
    steps: List[str] = Field(default_factory=list)
    due: DueBucket = DueBucket.TODAY
    effortMin: int = Field(default=30, ge=0)
    priority: TaskPriority = TaskPriority.P2
    owner: Optional[str] = None
    linkHint: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    relatedInsightIds: Optional[List[str]] = None
    impact: Optional[TaskImpact] = None


class OutcomeEstimate(BaseModel):
    """Projected CSAT range after completing the selected tasks."""
    base: float
    gain: float
    low: float
    mid: float
    high: float
    toTarget: float
    confidence: ImpactConfidence = ImpactConfidence.LOW


# =============================================================================
# Data Issues and Pipeline Result
# =============================================================================


class DataIssue(BaseModel):
    """
    A data quality issue detected while ingesting or aggregating rows.

    Issues are reported, never raised.
    """
    type: DataIssueType
    field: str = Field(..., description="Column or logical field concerned")
    message: str
    rowNumber: Optional[int] = Field(
        default=None,
        ge=1,
        description="1-based data row number (header excluded), when row-specific",
    )


class PipelineResult(BaseModel):
    """Complete, renderable output of one pipeline run."""
    window: RangeKey = RangeKey.TODAY
    summary: Summary
    agentStats: List[AgentStat] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    tasks: List[RecommendedTask] = Field(default_factory=list)
    problems: List[str] = Field(default_factory=list)
    dataIssues: List[DataIssue] = Field(default_factory=list)
    dailyKpis: List[DailyKpi] = Field(default_factory=list)
    csatDistribution: List[CsatBucket] = Field(default_factory=list)
    fcrWarning: bool = Field(
        default=False,
        description="FCR under 70% or more than 20% of rows with an unknown resolution",
    )


# =============================================================================
# API Envelopes
# =============================================================================


class AnalysisRequest(BaseModel):
    """Request body for POST /analysis."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rows": [
                    {
                        "Date": "2025-10-01",
                        "AgentName": "Akiko Tanaka",
                        "CSAT": "82",
                        "AHT": "05:10",
                        "Resolution_Status": "Resolved",
                    }
                ],
                "window": "today",
                "policy": {"csatTarget": 85},
                "filterByWindow": False,
            }
        }
    )

    rows: List[Dict[str, Any]] = Field(default_factory=list)
    window: Optional[RangeKey] = None
    policy: Optional[PolicyOverrides] = None
    filterByWindow: bool = False


class IngestionSummary(BaseModel):
    """Outcome of parsing an uploaded CSV."""
    rowCount: int = 0
    issues: List[DataIssue] = Field(default_factory=list)


class CsvAnalysisResponse(BaseModel):
    """Response body for POST /analysis/csv."""
    ingestion: IngestionSummary
    result: PipelineResult


class OutcomeRequest(BaseModel):
    """Request body for POST /analysis/outcome."""
    tasks: List[RecommendedTask] = Field(default_factory=list)
    selectedInsightId: Optional[str] = None
    baseCsat: Optional[float] = None
    csatTarget: Optional[float] = Field(default=None, ge=0, le=100)


class OutcomeResponse(BaseModel):
    """Response body for POST /analysis/outcome."""
    tasks: List[RecommendedTask] = Field(default_factory=list)
    outcome: Optional[OutcomeEstimate] = None
