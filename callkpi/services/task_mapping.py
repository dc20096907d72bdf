"""
Recommended Task Mapper

Turns the center summary and the per-agent stats into a short, ordered list of
concrete remediation tasks. The mapper works from KPIs alone and does not read
insights; the linker connects the two afterwards.

Triggers (each evaluated independently, at most one task per center trigger):
- Center CSAT below target with enough rows -> review 10 calls (P0)
- SLA columns missing -> add SLA columns to the export (P1)
- FCR below 90% with enough eligible rows -> drill into not-resolved causes (P1)
- Escalation rate at or above 5% with enough rows -> pre-escalation checklist (P1)
- Up to two lowest-CSAT agents under the agent threshold -> coaching (P1)
- The highest-escalation agent at or above 10% -> escalation coaching (P2)

If nothing fires, a baseline quality-upkeep task is added, so the list is
never empty. Tasks are stable-sorted by priority tier.

Task ids are a hash of scope, task key, owner and window, so identical input
always yields identical ids.
"""

import hashlib
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from callkpi.models import (
    AgentStat,
    DueBucket,
    MetricStatus,
    Policy,
    RangeKey,
    RecommendedTask,
    Scope,
    Summary,
    TaskPriority,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

FCR_TASK_BELOW: float = 90.0
ESCALATION_TASK_AT_OR_ABOVE: float = 5.0
AGENT_ESCALATION_AT_OR_ABOVE: float = 10.0

MAX_LOW_CSAT_AGENTS: int = 2
MAX_HIGH_ESCALATION_AGENTS: int = 1

DUE_BY_WINDOW: Dict[RangeKey, DueBucket] = {
    RangeKey.TODAY: DueBucket.TODAY,
    RangeKey.WEEK: DueBucket.THIS_WEEK,
    RangeKey.MONTH: DueBucket.THIS_MONTH,
}

PRIORITY_RANK: Dict[TaskPriority, int] = {
    TaskPriority.P0: 0,
    TaskPriority.P1: 1,
    TaskPriority.P2: 2,
}


def due_from_window(window: Union[RangeKey, str]) -> DueBucket:
    """Map a reporting window to the task due bucket."""
    return DUE_BY_WINDOW[RangeKey(window)]


def make_task_id(scope: Scope, key: str, window: RangeKey, owner: Optional[str] = None) -> str:
    """
    Deterministic task id: `{scope}_{key}_{8 hex chars}`.

    The suffix is a sha1 of scope, key, owner and window, so two agents
    receiving the same kind of task still get distinct ids.
    """
    seed = "|".join([scope.value, key, owner or "", window.value])
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:8]
    return f"{scope.value}_{key}_{digest}"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def pick_low_csat_agents(agent_stats: Sequence[AgentStat], threshold: float) -> List[AgentStat]:
    """Agents with calls and a CSAT under the threshold, lowest CSAT first."""
    picked = [
        a for a in agent_stats
        if _number(a.avgCsat) is not None and a.avgCsat < threshold and (a.totalCalls or 0) > 0
    ]
    return sorted(picked, key=lambda a: a.avgCsat)


def pick_high_escalation_agents(agent_stats: Sequence[AgentStat], min_rate: float) -> List[AgentStat]:
    """Agents with calls and an escalation rate at or above min_rate, highest first."""
    picked = [
        a for a in agent_stats
        if _number(a.escalationRate) is not None and a.escalationRate >= min_rate and (a.totalCalls or 0) > 0
    ]
    return sorted(picked, key=lambda a: -a.escalationRate)


# =============================================================================
# Task Builder
# =============================================================================


def build_recommended_tasks(
    summary: Summary,
    agent_stats: Optional[Sequence[AgentStat]] = None,
    policy: Optional[Policy] = None,
    window: Union[RangeKey, str] = RangeKey.TODAY,
) -> List[RecommendedTask]:
    """
    Build the recommended task list for a reporting window.

    Args:
        summary: Center-wide KPI snapshot
        agent_stats: Per-agent KPI snapshots
        policy: Threshold policy; defaults apply when omitted
        window: Reporting window, decides the due bucket

    Returns:
        Non-empty task list ordered P0, P1, P2 with insertion order kept
        inside each tier
    """
    policy = policy or Policy()
    window = RangeKey(window)
    due = due_from_window(window)
    agent_stats = list(agent_stats or [])

    tasks: List[RecommendedTask] = []

    row_count = summary.rowCount or 0
    csat = _number(summary.avgCsat)
    fcr = _number(summary.fcrRate)
    fcr_eligible = summary.fcrEligibleCount or 0
    escalation = _number(summary.escalationRate)

    if csat is not None and csat < policy.csatTarget and row_count >= policy.minSampleCalls:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.CENTER, "csat_review10", window),
                scope=Scope.CENTER,
                title="CSAT drop: review 10 calls and tag root causes",
                why=f"Average CSAT is {csat:g}% (target {policy.csatTarget:g}%).",
                steps=[
                    "Pull 10 recent calls at random (low-CSAT calls first is fine)",
                    "Tag each cause: (1) unresolvable/constraint (2) guidance quality (3) process/system",
                    "Write a one-line prevention rule (e.g. restate the request up front)",
                    "Share with supervisors and announce at tomorrow's QA huddle",
                ],
                due=due,
                effortMin=45,
                priority=TaskPriority.P0,
                linkHint="dashboard -> CSAT Distribution / Low bucket -> sample 10",
                meta={"csatTarget": policy.csatTarget, "csat": csat},
            )
        )

    if summary.slaStatus == MetricStatus.MISSING_COLUMNS:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.CENTER, "sla_columns_fix", window),
                scope=Scope.CENTER,
                title="SLA columns missing: add SLA/WithinSLA to the export and confirm the definition",
                why="SLA (v1) reports missing columns, so service level cannot be measured.",
                steps=[
                    "Check the export column list for SLA / ServiceLevel / WithinSLA",
                    "If absent, identify a substitute column (first reply time, next reply time)",
                    "Agree what 'SLA met' means (e.g. first reply within N minutes)",
                    "Add the column, re-import and confirm the SLA card comes back",
                ],
                due=due,
                effortMin=30,
                priority=TaskPriority.P1,
                linkHint="Export -> Columns",
                meta={"slaStatus": summary.slaStatus.value},
            )
        )

    if fcr is not None and fcr_eligible >= policy.minSampleCalls and fcr < FCR_TASK_BELOW:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.CENTER, "fcr_drilldown", window),
                scope=Scope.CENTER,
                title="FCR: check the top not-resolved reasons on 10 calls",
                why=f"FCR is {fcr:g}% ({fcr_eligible} eligible calls).",
                steps=[
                    "Pull 10 not-resolved calls (latest or most frequent category first)",
                    "Classify: (1) missing permission (2) missing knowledge (3) complex procedure (4) system/stock",
                    "Pick exactly one fix (e.g. extend a template or shorten the hand-off path)",
                    "Apply it from tomorrow and re-check FCR after one week",
                ],
                due=due,
                effortMin=40,
                priority=TaskPriority.P1,
                linkHint="dashboard -> FCR card -> eligible/unknown",
                meta={"fcr": fcr, "fcrEligible": fcr_eligible},
            )
        )

    if escalation is not None and row_count >= policy.minSampleCalls and escalation >= ESCALATION_TASK_AT_OR_ABOVE:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.CENTER, "escalation_reduce", window),
                scope=Scope.CENTER,
                title="Escalation: build a checklist to run before handing off to L2",
                why=f"Escalation rate is {escalation:g}% (over {row_count} rows).",
                steps=[
                    "Draft the top 3 escalation reasons (e.g. identity check, refund, stock)",
                    "Write a 3-point check to run before any L2 hand-off",
                    "Supervisors monitor 5 calls a day for checklist use",
                ],
                due=due,
                effortMin=35,
                priority=TaskPriority.P1,
                linkHint="dashboard -> Escalation card",
                meta={"escalation": escalation, "rowCount": row_count},
            )
        )

    for agent in pick_low_csat_agents(agent_stats, policy.lowCsatAgentThreshold)[:MAX_LOW_CSAT_AGENTS]:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.AGENT, "csat_coach", window, owner=agent.agentName),
                scope=Scope.AGENT,
                owner=agent.agentName,
                title="Coaching: short CSAT session on 3 calls",
                why=(
                    f"{agent.agentName} has a CSAT of {agent.avgCsat:g}% "
                    f"(threshold {policy.lowCsatAgentThreshold:g}%)."
                ),
                steps=[
                    "Listen to the 3 latest calls together (strengths first, then fixes)",
                    "Agree one thing to do on the next 3 calls",
                    "Re-check 3 calls tomorrow to confirm it stuck",
                ],
                due=due,
                effortMin=20,
                priority=TaskPriority.P1,
                meta={"agentCsat": agent.avgCsat, "calls": agent.totalCalls},
            )
        )

    for agent in pick_high_escalation_agents(agent_stats, AGENT_ESCALATION_AT_OR_ABOVE)[:MAX_HIGH_ESCALATION_AGENTS]:
        tasks.append(
            RecommendedTask(
                id=make_task_id(Scope.AGENT, "escalation_coach", window, owner=agent.agentName),
                scope=Scope.AGENT,
                owner=agent.agentName,
                title="Coaching: reduce escalations with a pre-escalation check",
                why=f"{agent.agentName} has an escalation rate of {agent.escalationRate:g}%.",
                steps=[
                    "Review 2 escalated calls and template one line to say before escalating",
                    "Use the template on 3 calls from tomorrow and compare",
                ],
                due=due,
                effortMin=15,
                priority=TaskPriority.P2,
                meta={"agentEscalationRate": agent.escalationRate, "calls": agent.totalCalls},
            )
        )

    if not tasks:
        tasks.append(baseline_task(window))

    # sorted() is stable, so insertion order survives inside a tier
    tasks = sorted(tasks, key=lambda t: PRIORITY_RANK[t.priority])

    logger.debug(f"Task mapper produced {len(tasks)} tasks for window '{window.value}'")
    return tasks


def baseline_task(window: Union[RangeKey, str]) -> RecommendedTask:
    """Quality-upkeep task used when no trigger fired."""
    window = RangeKey(window)
    return RecommendedTask(
        id=make_task_id(Scope.CENTER, "baseline_review10", window),
        scope=Scope.CENTER,
        title="Maintain: weekly review of 10 calls (quality upkeep)",
        why="No major anomaly, so run the minimum task that keeps quality steady.",
        steps=[
            "Pull 10 calls at random",
            "Note 3 good examples and 3 to improve",
            "Share briefly with the whole team tomorrow",
        ],
        due=due_from_window(window),
        effortMin=30,
        priority=TaskPriority.P2,
        linkHint="dashboard -> sample 10 calls",
    )
