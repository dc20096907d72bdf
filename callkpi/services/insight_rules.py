"""
Insight Rule Engine

Evaluates a fixed battery of threshold rules against the center summary and
the per-agent stats and emits human-readable insights.

Every rule is evaluated independently and all applicable rules fire, in this
order:
1. Center CSAT below (target - gap): critical under 80%, warn otherwise
2. Center CSAT low and center AHT above the too-high bound (compound)
3. Center CSAT low and center AHT below the too-low bound (compound)
4. Center FCR below 80%: critical under 70%, warn otherwise
5. Center escalation rate above 8%
6. Per sampled agent: AHT below the too-low bound
7. Per sampled agent: AHT above the too-high bound
8. Nothing fired: a single info-level "no findings" placeholder

Insight ids are derived from scope, topic and window only, so re-running on
the same input yields the same ids.
"""

import logging
import re
from typing import Any, List, Optional, Sequence, Tuple, Union

from callkpi.models import (
    AgentStat,
    Insight,
    InsightLevel,
    InsightSource,
    MetricKey,
    Policy,
    RangeKey,
    Scope,
    Summary,
)
from callkpi.services.aggregation import resolve_center_aht
from callkpi.services.normalization import round_half_up

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS - Fixed Thresholds
# =============================================================================

CSAT_LOW_GAP: float = 2.0
CSAT_CRITICAL_BELOW: float = 80.0
FCR_LOW: float = 80.0
FCR_CRITICAL_BELOW: float = 70.0
ESCALATION_HIGH: float = 8.0

INSIGHT_ID_PREFIX: str = "ins"


def make_insight_id(seed: str) -> str:
    """Build a stable insight id from a seed; whitespace becomes underscores."""
    return re.sub(r"\s+", "_", f"{INSIGHT_ID_PREFIX}_{seed}")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _seconds(value: float) -> int:
    return int(round_half_up(value, 0))


# =============================================================================
# Rule Battery
# =============================================================================


def evaluate_insight_rules(
    summary: Summary,
    agent_stats: Sequence[AgentStat],
    policy: Optional[Policy] = None,
    window: Union[RangeKey, str] = RangeKey.TODAY,
) -> Tuple[List[Insight], List[str]]:
    """
    Run every insight rule and collect the findings.

    Args:
        summary: Center-wide KPI snapshot
        agent_stats: Per-agent KPI snapshots
        policy: Threshold policy; defaults apply when omitted
        window: Reporting window, part of every insight id

    Returns:
        Tuple of (insights, problems) where problems holds one short
        headline per fired rule. The insight list is never empty.
    """
    policy = policy or Policy()
    window = RangeKey(window)
    w = window.value

    insights: List[Insight] = []
    problems: List[str] = []

    csat_target = policy.csatTarget
    center_csat = _as_number(summary.avgCsat)
    center_aht = resolve_center_aht(summary, agent_stats)
    center_fcr = _as_number(summary.fcrRate)
    center_esc = _as_number(summary.escalationRate)

    csat_low = center_csat is not None and center_csat < csat_target - CSAT_LOW_GAP
    aht_high = center_aht is not None and center_aht > policy.ahtTooHighSec
    aht_low = center_aht is not None and center_aht < policy.ahtTooLowSec

    if csat_low:
        problems.append("CSAT is low (center)")
        insights.append(
            Insight(
                id=make_insight_id(f"center_csat_low_{w}"),
                level=InsightLevel.CRITICAL if center_csat < CSAT_CRITICAL_BELOW else InsightLevel.WARN,
                title="CSAT is low (center)",
                why=f"Average CSAT is {center_csat:.1f}%, below the target ({csat_target:g}%).",
                impact="Lower satisfaction feeds straight into repeat contacts and churn risk.",
                scope=Scope.CENTER,
                who="center",
                window=window,
                metrics={MetricKey.CSAT.value: center_csat},
            )
        )

    if csat_low and aht_high:
        problems.append("Low CSAT with high AHT (center)")
        insights.append(
            Insight(
                id=make_insight_id(f"center_lowcsat_highaht_{w}"),
                level=InsightLevel.WARN,
                title="Low CSAT with long handle times (center)",
                why=(
                    f"CSAT {center_csat:.1f}% < {csat_target:g}% and "
                    f"AHT {_seconds(center_aht)}s > {policy.ahtTooHighSec:g}s"
                ),
                impact="Dissatisfaction and long calls together drive callbacks and workload.",
                scope=Scope.CENTER,
                who="center",
                window=window,
                metrics={MetricKey.CSAT.value: center_csat, MetricKey.AHT.value: center_aht},
            )
        )

    if csat_low and aht_low:
        problems.append("Low CSAT with low AHT (center)")
        insights.append(
            Insight(
                id=make_insight_id(f"center_lowcsat_lowaht_{w}"),
                level=InsightLevel.WARN,
                title="Low CSAT with short handle times (center)",
                why=(
                    f"CSAT {center_csat:.1f}% < {csat_target:g}% and "
                    f"AHT {_seconds(center_aht)}s < {policy.ahtTooLowSec:g}s"
                ),
                impact="Rushing, missing empathy or skipped checks; quality-driven callbacks follow.",
                scope=Scope.CENTER,
                who="center",
                window=window,
                metrics={MetricKey.CSAT.value: center_csat, MetricKey.AHT.value: center_aht},
            )
        )

    if center_fcr is not None and center_fcr < FCR_LOW:
        problems.append("FCR is low (center)")
        insights.append(
            Insight(
                id=make_insight_id(f"center_fcr_low_{w}"),
                level=InsightLevel.CRITICAL if center_fcr < FCR_CRITICAL_BELOW else InsightLevel.WARN,
                title="FCR is low (center)",
                why=f"FCR is {center_fcr:.1f}%, below the {FCR_LOW:g}% baseline.",
                impact="Repeat contacts push up AHT, cost and CSAT together.",
                scope=Scope.CENTER,
                who="center",
                window=window,
                metrics={MetricKey.FCR.value: center_fcr},
            )
        )

    if center_esc is not None and center_esc > ESCALATION_HIGH:
        problems.append("Escalation rate is high (center)")
        insights.append(
            Insight(
                id=make_insight_id(f"center_escalation_high_{w}"),
                level=InsightLevel.WARN,
                title="Escalation rate is high (center)",
                why=f"Escalation {center_esc:.1f}% > {ESCALATION_HIGH:g}%",
                impact="More tier-2 work means longer waits, higher cost and weaker first-contact resolution.",
                scope=Scope.CENTER,
                who="center",
                window=window,
                metrics={MetricKey.ESCALATION.value: center_esc},
            )
        )

    sampled_agents = [a for a in agent_stats or [] if (a.totalCalls or 0) >= policy.minSampleCalls]
    too_low = [a for a in sampled_agents if _as_number(a.avgAht) is not None and a.avgAht < policy.ahtTooLowSec]
    too_high = [a for a in sampled_agents if _as_number(a.avgAht) is not None and a.avgAht > policy.ahtTooHighSec]

    for agent in too_low:
        problems.append(f"AHT may be too short: {agent.agentName}")
        insights.append(
            Insight(
                id=make_insight_id(f"aht_too_low_{agent.agentName}_{w}"),
                level=InsightLevel.WARN,
                title="AHT is too short (quality risk)",
                why=(
                    f"{agent.agentName} averages {_seconds(agent.avgAht)}s per call, "
                    f"under the {policy.ahtTooLowSec:g}s floor."
                ),
                impact="Skipped checks lead to wrong answers, callbacks and lower CSAT.",
                scope=Scope.AGENT,
                who=agent.agentName,
                window=window,
                metrics=_agent_metrics(agent),
            )
        )

    for agent in too_high:
        problems.append(f"AHT may be too long: {agent.agentName}")
        insights.append(
            Insight(
                id=make_insight_id(f"aht_too_high_{agent.agentName}_{w}"),
                level=InsightLevel.WARN,
                title="AHT is too long (efficiency risk)",
                why=(
                    f"{agent.agentName} averages {_seconds(agent.avgAht)}s per call, "
                    f"over the {policy.ahtTooHighSec:g}s ceiling."
                ),
                impact="Lower throughput and longer queues drag CSAT down.",
                scope=Scope.AGENT,
                who=agent.agentName,
                window=window,
                metrics=_agent_metrics(agent),
            )
        )

    if not insights:
        insights.append(no_findings_insight(window))

    logger.debug(f"Insight rules fired {len(problems)} findings for window '{w}'")
    return insights, problems


def build_insights(
    summary: Summary,
    agent_stats: Sequence[AgentStat],
    policy: Optional[Policy] = None,
    window: Union[RangeKey, str] = RangeKey.TODAY,
) -> List[Insight]:
    """Insights only; see evaluate_insight_rules for the rule battery."""
    insights, _ = evaluate_insight_rules(summary, agent_stats, policy, window)
    return insights


def no_findings_insight(window: Union[RangeKey, str], source: InsightSource = InsightSource.RULE) -> Insight:
    """Placeholder shown when no rule condition matched."""
    window = RangeKey(window)
    return Insight(
        id=make_insight_id(f"no_findings_{window.value}"),
        level=InsightLevel.INFO,
        title="No major anomalies detected (v1)",
        why="None of the current rule conditions matched.",
        scope=Scope.CENTER,
        who="center",
        window=window,
        source=source,
    )


def _agent_metrics(agent: AgentStat) -> dict:
    return {
        MetricKey.AHT.value: agent.avgAht,
        MetricKey.CSAT.value: agent.avgCsat,
        MetricKey.FCR.value: agent.fcrRate,
    }
