"""
Principle Overlay

A hand-authored set of "lens" findings that are always worth saying next to
the live rule output, e.g. "look at the CSAT median, not only the mean".
Some entries are gated by a `when` predicate over the run context.

Merge policy:
- overlay entries go first, rule insights after
- the combined list is stable-sorted by boost, descending, so ties keep
  their relative order
- id collisions are left alone here; the insight-task linker deduplicates
- an empty result is replaced by a single system "no findings" entry
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from callkpi.models import (
    AgentStat,
    Insight,
    InsightLevel,
    InsightSource,
    Lens,
    RangeKey,
    Scope,
    Summary,
)

# Share of rows with an unknown resolution status above which the FCR
# metric itself is flagged as unreliable.
FCR_UNKNOWN_RATIO_THRESHOLD: float = 0.2

OVERLAY_WHO: str = "lens"
FALLBACK_ID: str = "fallback_ok"


@dataclass(frozen=True)
class OverlayContext:
    """Inputs visible to overlay predicates."""
    summary: Optional[Summary]
    agentStats: Sequence[AgentStat]
    window: RangeKey


@dataclass(frozen=True)
class PrincipleSeed:
    """
    One overlay entry.

    Attributes:
        id: Stable insight id
        title: Headline shown on the dashboard
        why: One-sentence rationale
        lens: Topic the principle belongs to
        when: Optional predicate; the entry is emitted only when it returns True
        priorityBoost: 0-2, sort order only
    """
    id: str
    title: str
    why: str
    lens: Lens
    when: Optional[Callable[[OverlayContext], bool]] = None
    priorityBoost: int = 0


def _fcr_unknown_is_high(ctx: OverlayContext) -> bool:
    if ctx.summary is None:
        return False
    row_count = ctx.summary.rowCount or 0
    unknown = ctx.summary.fcrUnknownCount or 0
    return row_count > 0 and unknown / row_count > FCR_UNKNOWN_RATIO_THRESHOLD


PRINCIPLE_SEEDS: Sequence[PrincipleSeed] = (
    PrincipleSeed(
        id="csat_median_over_mean",
        title="Read CSAT by its median, not only its mean",
        why="A handful of very low scores skews the mean; the shape of the distribution decides the fix.",
        lens=Lens.CSAT,
    ),
    PrincipleSeed(
        id="fcr_unknown_is_design",
        title="Many FCR unknowns is a design problem, not an operations problem",
        why="What cannot be measured cannot be improved; a high unknown share makes the KPI itself untrustworthy.",
        lens=Lens.FCR,
        when=_fcr_unknown_is_high,
        priorityBoost=2,
    ),
    PrincipleSeed(
        id="aht_low_not_always_good",
        title="Low AHT is not automatically good (checks or empathy may be skipped)",
        why="Short calls are no proxy for quality; judge AHT together with CSAT and FCR.",
        lens=Lens.AHT,
    ),
    PrincipleSeed(
        id="escalation_mix_driver",
        title="Read the escalation rate together with tenure mix and case difficulty",
        why="Whether it is a process gap or a skills gap changes the remedy.",
        lens=Lens.ESCALATION,
    ),
)


def seed_to_insight(seed: PrincipleSeed, window: RangeKey) -> Insight:
    """Render an overlay seed as an info-level center insight."""
    return Insight(
        id=seed.id,
        level=InsightLevel.INFO,
        title=seed.title,
        why=seed.why,
        scope=Scope.CENTER,
        who=OVERLAY_WHO,
        window=window,
        lens=seed.lens,
        source=InsightSource.PRINCIPLE_OVERLAY,
        boost=seed.priorityBoost,
    )


def apply_principle_overlay(
    insights: Optional[Sequence[Insight]],
    summary: Optional[Summary],
    agent_stats: Optional[Sequence[AgentStat]] = None,
    window: Union[RangeKey, str] = RangeKey.TODAY,
    seeds: Sequence[PrincipleSeed] = PRINCIPLE_SEEDS,
) -> List[Insight]:
    """
    Merge overlay findings with the rule-engine insights.

    Args:
        insights: Rule-engine output
        summary: Center snapshot, used by seed predicates
        agent_stats: Per-agent snapshots, used by seed predicates
        window: Reporting window
        seeds: Overlay entries to evaluate

    Returns:
        Overlay entries followed by rule insights, stable-sorted by boost
        descending. Never empty.
    """
    window = RangeKey(window)
    ctx = OverlayContext(summary=summary, agentStats=list(agent_stats or []), window=window)

    overlay = [seed_to_insight(seed, window) for seed in seeds if seed.when is None or seed.when(ctx)]

    base: List[Insight] = []
    for idx, insight in enumerate(insights or []):
        base.append(insight if insight.id else insight.model_copy(update={"id": f"rule_{idx}"}))

    merged = sorted(overlay + base, key=lambda it: -(it.boost or 0))

    if not merged:
        return [
            Insight(
                id=FALLBACK_ID,
                level=InsightLevel.INFO,
                title="No major anomalies detected (v1)",
                why="None of the current rule conditions matched.",
                scope=Scope.CENTER,
                who="system",
                window=window,
                source=InsightSource.FALLBACK,
            )
        ]
    return merged
