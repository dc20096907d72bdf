"""
Outcome Estimator

Projects where center CSAT would land if the selected tasks were completed.
The estimate is the base CSAT plus the sum of the tasks' `impact.csatDelta`,
shown as a low/mid/high range (0.7x / 1.0x / 1.3x of the gain), each point
clamped to [0, 100].

Confidence is always reported as low: the per-task deltas are fixed guesses
and no calibration against observed results exists yet.
"""

import math
from typing import List, Optional, Sequence

from callkpi.models import ImpactConfidence, OutcomeEstimate, RecommendedTask

LOW_SCALE: float = 0.7
MID_SCALE: float = 1.0
HIGH_SCALE: float = 1.3

DEFAULT_CSAT_TARGET: float = 85.0


def _clamp_pct(value: float) -> float:
    return min(100.0, max(0.0, value))


def filter_tasks_by_insight(
    tasks: Sequence[RecommendedTask],
    insight_id: Optional[str],
) -> List[RecommendedTask]:
    """
    Tasks linked to the selected insight.

    With no selection every task is returned. Tasks that were never linked
    (relatedInsightIds is null) never match a selection.
    """
    if not insight_id:
        return list(tasks)
    return [t for t in tasks if t.relatedInsightIds and insight_id in t.relatedInsightIds]


def estimate_outcome(
    base_csat: Optional[float],
    tasks: Sequence[RecommendedTask],
    target: float = DEFAULT_CSAT_TARGET,
) -> Optional[OutcomeEstimate]:
    """
    Estimate the CSAT range after completing the given tasks.

    Args:
        base_csat: Current center CSAT; None when unavailable
        tasks: Tasks to count, usually the filtered selection
        target: CSAT target used for toTarget

    Returns:
        OutcomeEstimate, or None when base CSAT is unavailable

    Example:
        >>> from callkpi.models import RecommendedTask, TaskImpact
        >>> task = RecommendedTask(id="t1", scope="center", title="CSAT drop",
        ...                        impact=TaskImpact(csatDelta=2.0))
        >>> est = estimate_outcome(80.0, [task])
        >>> (est.low, est.mid, est.high)
        (81.4, 82.0, 82.6)
    """
    if base_csat is None or isinstance(base_csat, bool):
        return None
    try:
        base_csat = float(base_csat)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(base_csat):
        return None

    gain = sum(t.impact.csatDelta for t in tasks if t.impact is not None)

    mid = _clamp_pct(base_csat + gain * MID_SCALE)
    return OutcomeEstimate(
        base=base_csat,
        gain=gain,
        low=_clamp_pct(base_csat + gain * LOW_SCALE),
        mid=mid,
        high=_clamp_pct(base_csat + gain * HIGH_SCALE),
        toTarget=max(0.0, target - mid),
        confidence=ImpactConfidence.LOW,
    )
