"""
KPI Pipeline

Runs every stage over one row set and returns a complete, renderable result:

    rows -> capability probe -> (window filter) -> summary + agent stats
         -> insight rules -> principle overlay -> task mapper -> linker

The principle overlay and the linker are enrichment stages. If either one
fails, the failure is logged and the pipeline continues with the output of the
stage before it, so a result is always produced. Insights and tasks are never
empty.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from callkpi.models import (
    AgentStat,
    DataIssue,
    DataIssueType,
    MetricStatus,
    PipelineResult,
    Policy,
    RangeKey,
    Summary,
)
from callkpi.services.aggregation import (
    build_agent_stats,
    build_csat_distribution,
    build_daily_kpis,
    compute_summary,
    fcr_needs_attention,
    filter_rows_by_window,
)
from callkpi.services.insight_rules import evaluate_insight_rules
from callkpi.services.linking import link_tasks_and_insights
from callkpi.services.normalization import probe_columns
from callkpi.services.principle_overlay import apply_principle_overlay
from callkpi.services.task_mapping import build_recommended_tasks

logger = logging.getLogger(__name__)

# Field reported on a missing_column issue, per categorical metric.
METRIC_SOURCE_FIELDS = {
    "fcr": "Resolution_Status",
    "sla": "WithinSLA/SLA",
    "escalation": "Resolution_Status",
}


def collect_data_issues(
    summary: Summary,
    agent_stats: Sequence[AgentStat],
    policy: Policy,
) -> List[DataIssue]:
    """
    Describe degraded metrics and thin samples as data issues.

    - missing_column for each categorical metric reporting missing columns
    - insufficient_sample when the row set is under the sample floor
    - insufficient_sample when agents are left out of the per-agent rules
    """
    issues: List[DataIssue] = []

    for name, field in METRIC_SOURCE_FIELDS.items():
        if summary.metric(name).status == MetricStatus.MISSING_COLUMNS:
            issues.append(
                DataIssue(
                    type=DataIssueType.MISSING_COLUMN,
                    field=field,
                    message=f"{name.upper()} cannot be computed: no {field} column in the file.",
                )
            )

    if summary.rowCount < policy.minSampleCalls:
        issues.append(
            DataIssue(
                type=DataIssueType.INSUFFICIENT_SAMPLE,
                field="rows",
                message=(
                    f"Only {summary.rowCount} rows (minimum {policy.minSampleCalls}); "
                    "sample-gated rules and tasks are suppressed."
                ),
            )
        )

    under_sampled = [a.agentName for a in agent_stats if (a.totalCalls or 0) < policy.minSampleCalls]
    if under_sampled:
        issues.append(
            DataIssue(
                type=DataIssueType.INSUFFICIENT_SAMPLE,
                field="AgentName",
                message=(
                    f"{len(under_sampled)} agent(s) under {policy.minSampleCalls} calls "
                    "are excluded from per-agent AHT rules."
                ),
            )
        )

    return issues


def run_pipeline(
    rows: Optional[Sequence[Mapping[str, Any]]],
    policy: Optional[Policy] = None,
    window: Union[RangeKey, str] = RangeKey.TODAY,
    filter_by_window: bool = False,
) -> PipelineResult:
    """
    Run the full KPI pipeline.

    Args:
        rows: Cleaned rows of arbitrary shape
        policy: Threshold policy; defaults apply when omitted
        window: Reporting window for ids, due buckets and the optional filter
        filter_by_window: Slice rows to the window before aggregating

    Returns:
        PipelineResult with non-empty insights and tasks
    """
    policy = policy or Policy()
    window = RangeKey(window)
    all_rows = list(rows or [])

    # Capabilities come from the whole file, before any window slicing.
    capabilities = probe_columns(all_rows)
    scoped_rows = filter_rows_by_window(all_rows, window) if filter_by_window else all_rows

    summary = compute_summary(scoped_rows, capabilities)
    agent_stats = build_agent_stats(scoped_rows, capabilities)

    insights, problems = evaluate_insight_rules(summary, agent_stats, policy, window)

    try:
        insights = apply_principle_overlay(insights, summary, agent_stats, window)
    except Exception:
        logger.exception("Principle overlay failed; keeping rule insights")

    tasks = build_recommended_tasks(summary, agent_stats, policy, window)

    try:
        tasks, insights = link_tasks_and_insights(tasks, insights, policy.csatTarget, window)
    except Exception:
        logger.exception("Insight-task linking failed; returning unlinked tasks")

    result = PipelineResult(
        window=window,
        summary=summary,
        agentStats=agent_stats,
        insights=insights,
        tasks=tasks,
        problems=problems,
        dataIssues=collect_data_issues(summary, agent_stats, policy),
        dailyKpis=build_daily_kpis(scoped_rows, capabilities),
        csatDistribution=build_csat_distribution(scoped_rows),
        fcrWarning=fcr_needs_attention(summary),
    )

    logger.info(
        f"Pipeline '{window.value}': {summary.rowCount} rows, {len(agent_stats)} agents, "
        f"{len(result.insights)} insights, {len(result.tasks)} tasks, "
        f"{len(result.dataIssues)} data issues"
    )
    return result
