"""
CallKPI Services Module

Business logic for the KPI pipeline. Every service is a set of pure, stateless
functions: nothing here performs I/O apart from logging, and malformed input
degrades to null/unknown values instead of raising.

Services:
- normalization: alias-list field lookup and tolerant value parsers
- aggregation: summary, per-agent stats, center AHT, window filter, daily KPIs
- insight_rules: threshold rule battery producing insights and problems
- principle_overlay: fixed lens findings merged ahead of rule insights
- task_mapping: recommended tasks from KPIs
- linking: insight-task linking, impact guesses, insight synthesis
- outcome: task filtering by insight and CSAT outcome estimate
- ingestion: CSV upload parsing with data issue reporting
- pipeline: end-to-end orchestration

All services are consumed by the API layer (callkpi/api/).
"""

# =============================================================================
# Normalization Exports
# =============================================================================

from callkpi.services.normalization import (
    ColumnCapabilities,
    probe_columns,
    pick,
    parse_number,
    parse_seconds,
    parse_bool,
    parse_status,
    detect_escalation,
    agent_key,
)

# =============================================================================
# Aggregation Exports
# =============================================================================

from callkpi.services.aggregation import (
    compute_summary,
    build_agent_stats,
    weighted_agent_aht,
    resolve_center_aht,
    filter_rows_by_window,
    build_daily_kpis,
    build_csat_distribution,
    fcr_needs_attention,
)

# =============================================================================
# Insight / Task Exports
# =============================================================================

from callkpi.services.insight_rules import (
    evaluate_insight_rules,
    build_insights,
)

from callkpi.services.principle_overlay import (
    PRINCIPLE_SEEDS,
    apply_principle_overlay,
)

from callkpi.services.task_mapping import (
    build_recommended_tasks,
    due_from_window,
)

from callkpi.services.linking import (
    infer_insight_id_from_task,
    infer_insight_id_from_insight,
    infer_impact,
    synthesize_insights_from_tasks,
    link_tasks_and_insights,
)

from callkpi.services.outcome import (
    filter_tasks_by_insight,
    estimate_outcome,
)

# =============================================================================
# Ingestion and Pipeline Exports
# =============================================================================

from callkpi.services.ingestion import parse_csv

from callkpi.services.pipeline import (
    collect_data_issues,
    run_pipeline,
)


__all__ = [
    # normalization
    "ColumnCapabilities",
    "probe_columns",
    "pick",
    "parse_number",
    "parse_seconds",
    "parse_bool",
    "parse_status",
    "detect_escalation",
    "agent_key",
    # aggregation
    "compute_summary",
    "build_agent_stats",
    "weighted_agent_aht",
    "resolve_center_aht",
    "filter_rows_by_window",
    "build_daily_kpis",
    "build_csat_distribution",
    "fcr_needs_attention",
    # insights and tasks
    "evaluate_insight_rules",
    "build_insights",
    "PRINCIPLE_SEEDS",
    "apply_principle_overlay",
    "build_recommended_tasks",
    "due_from_window",
    "infer_insight_id_from_task",
    "infer_insight_id_from_insight",
    "infer_impact",
    "synthesize_insights_from_tasks",
    "link_tasks_and_insights",
    "filter_tasks_by_insight",
    "estimate_outcome",
    # ingestion and pipeline
    "parse_csv",
    "collect_data_issues",
    "run_pipeline",
]
