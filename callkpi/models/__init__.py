"""
Package initialization file for CallKPI models.

Exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import them from callkpi.models directly.

Usage:
    from callkpi.models import (
        Summary,
        AgentStat,
        Insight,
        RecommendedTask,
        RangeKey,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from callkpi.models.enums import (
    RangeKey,
    InsightLevel,
    Scope,
    DueBucket,
    TaskPriority,
    MetricStatus,
    ResolutionClass,
    SlaMode,
    MetricKey,
    InsightSource,
    Lens,
    ImpactConfidence,
    DataIssueType,
)

# =============================================================================
# Schemas
# =============================================================================

from callkpi.models.schemas import (
    # Policy
    Policy,
    PolicyOverrides,
    # KPI snapshots
    MetricSnapshot,
    Summary,
    AgentStat,
    DailyKpi,
    CsatBucket,
    # Insights and tasks
    Insight,
    TaskImpact,
    RecommendedTask,
    OutcomeEstimate,
    # Data issues and results
    DataIssue,
    PipelineResult,
    # API envelopes
    AnalysisRequest,
    IngestionSummary,
    CsvAnalysisResponse,
    OutcomeRequest,
    OutcomeResponse,
)


__all__ = [
    # Enums
    "RangeKey",
    "InsightLevel",
    "Scope",
    "DueBucket",
    "TaskPriority",
    "MetricStatus",
    "ResolutionClass",
    "SlaMode",
    "MetricKey",
    "InsightSource",
    "Lens",
    "ImpactConfidence",
    "DataIssueType",
    # Schemas
    "Policy",
    "PolicyOverrides",
    "MetricSnapshot",
    "Summary",
    "AgentStat",
    "DailyKpi",
    "CsatBucket",
    "Insight",
    "TaskImpact",
    "RecommendedTask",
    "OutcomeEstimate",
    "DataIssue",
    "PipelineResult",
    "AnalysisRequest",
    "IngestionSummary",
    "CsvAnalysisResponse",
    "OutcomeRequest",
    "OutcomeResponse",
]
